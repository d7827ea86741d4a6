#!/usr/bin/env python3
"""Scripted session backend for exercising the bridge without a real network.

The backend issues a pairing challenge, rotates it a few times, then
"pairs" and stays connected until a logout. Useful to watch the observer
stream with any WebSocket client:

    python scripts/demo_backend.py --port 3001
    websocat ws://127.0.0.1:3001/

It can also be loaded by the regular entry point:

    PYTHONPATH=scripts python -m pywabridge --backend demo_backend:create_backend
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import secrets
import sys
from collections.abc import AsyncIterator
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pywabridge import (  # noqa: E402
    BridgeConfig,
    ConnectionOpened,
    PairingChallengeIssued,
    SessionEvent,
    SessionIdentity,
)
from pywabridge.__main__ import main as bridge_main  # noqa: E402

_LOG = logging.getLogger("demo_backend")


class DemoHandle:
    def __init__(self, *, paired: bool, rotations: int, interval: float) -> None:
        self._paired = paired
        self._rotations = rotations
        self._interval = interval
        self._closed = asyncio.Event()

    async def events(self) -> AsyncIterator[SessionEvent]:
        if not self._paired:
            for _ in range(self._rotations):
                yield PairingChallengeIssued(token=f"2@{secrets.token_urlsafe(24)}")
                await asyncio.sleep(self._interval)
        yield ConnectionOpened(identity=SessionIdentity(id="15551230000:1@s.whatsapp.net", name="Demo"))
        await self._closed.wait()

    async def send(self, destination: str, text: str) -> None:
        _LOG.info("demo send to=%s chars=%d", destination, len(text))

    async def close(self) -> None:
        self._closed.set()


class DemoBackend:
    def __init__(self, *, rotations: int = 3, interval: float = 5.0) -> None:
        self._rotations = rotations
        self._interval = interval
        self._paired = False

    async def start(self) -> DemoHandle:
        handle = DemoHandle(paired=self._paired, rotations=self._rotations, interval=self._interval)
        self._paired = True
        return handle

    async def teardown(self) -> None:
        self._paired = False


def create_backend(_config: BridgeConfig) -> DemoBackend:
    return DemoBackend()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the bridge against a scripted demo backend.")
    parser.add_argument("--port", type=int, default=3001)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    argv = ["--port", str(args.port), "--backend", "demo_backend:create_backend"]
    if args.verbose:
        argv.append("--verbose")
    sys.path.insert(0, str(Path(__file__).resolve().parent))
    raise SystemExit(bridge_main(argv))
