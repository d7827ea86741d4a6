"""In-memory connection state store.

The reconciler is the only component allowed to mutate it.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from pywabridge.state.events import ConnectionPhase, WireEvent

_logger = logging.getLogger(__name__)


class StateSnapshot(BaseModel):
    """Read-only view of the current connection state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    challenge: str | None = None
    account: str | None = None

    def to_wire_events(self) -> list[WireEvent]:
        """Decompose into the discrete events an observer understands."""
        return [
            WireEvent.phase(self.phase),
            WireEvent.challenge(self.challenge),
            WireEvent.account(self.account),
        ]


class StateStore:
    """Holds the single current snapshot of the bridged session.

    Every mutation goes through :meth:`set_phase`, which updates the phase and
    its associated fields together so that no intermediate state is ever
    observable:

    - ``awaiting_challenge`` carries a challenge and no account.
    - ``connected`` carries an account and no challenge.
    - ``disconnected`` carries neither.

    Calls that would break these rules raise :class:`ValueError`. Inputs are
    produced by the reconciler, so a violation is a logic defect there.
    """

    def __init__(self) -> None:
        self._snapshot = StateSnapshot()

    @property
    def phase(self) -> ConnectionPhase:
        return self._snapshot.phase

    def snapshot(self) -> StateSnapshot:
        return self._snapshot

    def set_phase(
        self,
        phase: ConnectionPhase,
        *,
        challenge: str | None = None,
        account: str | None = None,
    ) -> StateSnapshot:
        """Atomically replace the current state. Returns the new snapshot."""
        if phase is ConnectionPhase.AWAITING_CHALLENGE:
            if not challenge:
                raise ValueError("awaiting_challenge requires a challenge")
            if account is not None:
                raise ValueError("awaiting_challenge cannot carry an account")
        elif phase is ConnectionPhase.CONNECTED:
            if not account:
                raise ValueError("connected requires an account summary")
            if challenge is not None:
                raise ValueError("connected cannot carry a challenge")
        elif challenge is not None or account is not None:
            raise ValueError("disconnected cannot carry a challenge or account")

        self._snapshot = StateSnapshot(phase=phase, challenge=challenge, account=account)
        _logger.debug("State phase=%s account=%s", phase, account)
        return self._snapshot
