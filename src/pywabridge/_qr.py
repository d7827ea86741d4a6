"""Render pairing challenges into displayable QR images."""

from __future__ import annotations

import asyncio

import segno

from pywabridge.exceptions import ChallengeTransformError


def challenge_to_data_uri(token: str, *, scale: int = 6, border: int = 4) -> str:
    """Encode *token* as a QR code and return it as a PNG ``data:`` URI."""
    if not token:
        raise ChallengeTransformError("Pairing challenge is empty")
    try:
        qr = segno.make(token, micro=False)
        return str(qr.png_data_uri(scale=scale, border=border))
    except ValueError as exc:
        raise ChallengeTransformError(f"Pairing challenge could not be encoded: {exc}") from exc


async def render_challenge(token: str) -> str:
    """Async wrapper: PNG encoding runs off the event loop."""
    return await asyncio.to_thread(challenge_to_data_uri, token)
