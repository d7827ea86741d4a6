"""Helpers for safe debug logging.

The bridge handles pairing tokens, credentials and user message bodies.
This module redacts those before they reach a log record.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "token",
        "challenge",
        "qr",
        "creds",
        "credentials",
        "noisekey",
        "signedidentitykey",
        "advsecretkey",
        # User content
        "message",
        "text",
    }
)


def _normalize_key(key: Any) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def mask_phone(value: str) -> str:
    """Keep only the last four digits of a phone number or destination."""
    local = value.split("@", 1)[0]
    if len(local) <= 4:
        return "*" * len(local)
    return f"{'*' * (len(local) - 4)}{local[-4:]}"


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Pydantic models and dataclasses are dumped first, so callers can pass
    request models and session events directly.
    """
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, BaseModel):
        return redact_for_log(value.model_dump(), max_string=max_string, _depth=_depth + 1)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return redact_for_log(dataclasses.asdict(value), max_string=max_string, _depth=_depth + 1)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            normalized = _normalize_key(k)
            if normalized in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            elif normalized in {"phone", "destination"} and isinstance(v, str):
                redacted[key] = mask_phone(v)
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return f"<{type(value).__name__}>"
