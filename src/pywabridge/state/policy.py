"""Reconnect policy.

This module contains *no* I/O. It classifies why a session closed and picks
the delay before the next start attempt.
"""

from __future__ import annotations

from collections.abc import Collection
from enum import StrEnum

from pywabridge.session import DisconnectCause

#: Status code chat protocols report for a device that was logged out.
LOGGED_OUT_STATUS: int = 401


class DisconnectKind(StrEnum):
    TERMINAL = "terminal"
    TRANSIENT = "transient"


def classify_disconnect(
    cause: DisconnectCause,
    *,
    terminal_status_codes: Collection[int] = frozenset({LOGGED_OUT_STATUS}),
) -> DisconnectKind:
    """Map a close cause onto the closed ``{terminal, transient}`` set.

    Policy:
    - explicit logout or an unauthorized status code: terminal.
    - everything else (network drop, server restart, unknown): transient.
    """
    if cause.logged_out:
        return DisconnectKind.TERMINAL
    if cause.status_code is not None and cause.status_code in terminal_status_codes:
        return DisconnectKind.TERMINAL
    return DisconnectKind.TRANSIENT


def restart_delay(
    kind: DisconnectKind,
    *,
    reconnect_delay: float,
    terminal_restart_delay: float,
) -> float:
    """Seconds to wait before starting a new session after a close."""
    if kind is DisconnectKind.TERMINAL:
        return terminal_restart_delay
    return reconnect_delay
