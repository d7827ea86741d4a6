"""Connection phases and the wire events pushed to observers.

Every state change leaves the bridge as one of three discrete event kinds.
Only the fan-out layer is allowed to serialize them.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ConnectionPhase(StrEnum):
    DISCONNECTED = "disconnected"
    AWAITING_CHALLENGE = "awaiting_challenge"
    CONNECTED = "connected"


class WireEventKind(StrEnum):
    PHASE = "phase"
    CHALLENGE = "challenge"
    ACCOUNT = "account"


class WireEvent(BaseModel):
    """A single typed event as delivered to an observer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: WireEventKind
    value: str | None = None

    @classmethod
    def phase(cls, phase: ConnectionPhase) -> WireEvent:
        return cls(kind=WireEventKind.PHASE, value=phase.value)

    @classmethod
    def challenge(cls, artifact: str | None) -> WireEvent:
        return cls(kind=WireEventKind.CHALLENGE, value=artifact)

    @classmethod
    def account(cls, summary: str | None) -> WireEvent:
        return cls(kind=WireEventKind.ACCOUNT, value=summary)

    def to_json(self) -> str:
        """Serialize to the JSON text frame sent over the transport."""
        return self.model_dump_json()
