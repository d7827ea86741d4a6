"""Boundary with the external chat-protocol session.

The bridge never talks to a messaging network directly. A backend object
implementing :class:`SessionBackend` owns pairing-challenge generation,
credential persistence and outbound transport; the bridge only consumes the
lifecycle events its handles emit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionIdentity(BaseModel):
    """Identity of the authenticated account, as reported on open.

    Parameters
    ----------
    id : str
        Protocol-level account id, e.g. ``"15551230000:1@s.whatsapp.net"``.
        The part before ``:`` (device) or ``@`` (server) is the phone number.
    name : str or None
        Display name, when the network provides one.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    id: str
    name: str | None = None

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: str) -> str:
        if not value:
            raise ValueError("id must be non-empty")
        return value

    @property
    def normalized_id(self) -> str:
        """Phone number without device or server suffix."""
        return self.id.split(":", 1)[0].split("@", 1)[0]

    def account_summary(self) -> str:
        """Human-readable summary, e.g. ``"Alice (+15551230000)"``."""
        return f"{self.name or 'Unknown'} (+{self.normalized_id})"


class DisconnectCause(BaseModel):
    """Why a session closed.

    ``status_code`` follows the HTTP-like codes chat protocols commonly
    report on close (``401`` for a logged-out device).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int | None = None
    reason: str = ""
    logged_out: bool = Field(default=False, description="Backend-asserted explicit logout")


@dataclass(frozen=True)
class PairingChallengeIssued:
    """The backend needs a human to scan a fresh pairing token."""

    token: str


@dataclass(frozen=True)
class ConnectionOpened:
    identity: SessionIdentity


@dataclass(frozen=True)
class ConnectionClosed:
    cause: DisconnectCause


SessionEvent = PairingChallengeIssued | ConnectionOpened | ConnectionClosed


class SessionHandle(Protocol):
    """A single started session instance."""

    def events(self) -> AsyncIterator[SessionEvent]:
        """Lifecycle events, in emission order.

        The stream ends after :class:`ConnectionClosed` (or when the handle
        is closed).
        """
        ...

    async def send(self, destination: str, text: str) -> None:
        """Dispatch a text message. Raises :class:`~pywabridge.exceptions.SendError`."""
        ...

    async def close(self) -> None:
        ...


class SessionBackend(Protocol):
    """Factory for session instances plus credential teardown."""

    async def start(self) -> SessionHandle:
        """Start a new session. Raises :class:`~pywabridge.exceptions.StartupError`."""
        ...

    async def teardown(self) -> None:
        """Discard persisted credentials. Raises :class:`~pywabridge.exceptions.TeardownError`."""
        ...
