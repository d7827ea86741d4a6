"""Command-intake models (``POST /send``, ``POST /logout``, ``GET /status``)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pywabridge.state.events import ConnectionPhase
from pywabridge.state.store import StateSnapshot


class SendRequest(BaseModel):
    """Body of ``POST /send``."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    phone: str = Field(..., description="Destination phone number, any formatting")
    message: str = Field(..., min_length=1)

    @field_validator("phone")
    @classmethod
    def _require_digits(cls, value: str) -> str:
        if not any(ch.isdigit() for ch in value):
            raise ValueError("phone must contain at least one digit")
        return value


class CommandResult(BaseModel):
    """Uniform ``{"success": ..., "error": ...}`` reply."""

    model_config = ConfigDict(frozen=True)

    success: bool
    error: str | None = None


class StatusResponse(BaseModel):
    """Body of ``GET /status``.

    The challenge artifact itself is only pushed over the observer stream.
    """

    model_config = ConfigDict(frozen=True)

    phase: ConnectionPhase
    account: str | None = None
    has_challenge: bool = False
    observers: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: StateSnapshot, *, observers: int = 0) -> StatusResponse:
        return cls(
            phase=snapshot.phase,
            account=snapshot.account,
            has_challenge=snapshot.challenge is not None,
            observers=observers,
        )
