"""Session lifecycle reconciliation.

Owns:
- starting the external session (single-flight)
- translating lifecycle events into state-store updates plus broadcasts
- the reconnect/teardown policy after a close
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from pywabridge._qr import render_challenge
from pywabridge._redact import redact_for_log
from pywabridge.config import BridgeConfig
from pywabridge.exceptions import ChallengeTransformError, StartupError, TeardownError
from pywabridge.fanout import Fanout
from pywabridge.session import (
    ConnectionClosed,
    ConnectionOpened,
    DisconnectCause,
    PairingChallengeIssued,
    SessionBackend,
    SessionHandle,
    SessionIdentity,
)
from pywabridge.state.events import ConnectionPhase
from pywabridge.state.policy import DisconnectKind, classify_disconnect, restart_delay
from pywabridge.state.store import StateStore

_logger = logging.getLogger(__name__)

ChallengeRenderer = Callable[[str], Awaitable[str]]


class ReconcilerState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    AWAITING_CHALLENGE = "awaiting_challenge"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"


class SessionReconciler:
    """Drive one external session through its lifecycle.

    ``starting`` doubles as the single-flight latch: a start request while a
    start is already in progress is a no-op. Each start gets a generation
    number; events and start results from an older generation (one that a
    teardown or stop has preempted) are discarded.
    """

    def __init__(
        self,
        backend: SessionBackend,
        store: StateStore,
        fanout: Fanout,
        *,
        config: BridgeConfig | None = None,
        renderer: ChallengeRenderer = render_challenge,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._store = store
        self._fanout = fanout
        self._config = config or BridgeConfig()
        self._renderer = renderer
        self._sleep = sleep
        self._state = ReconcilerState.IDLE
        self._generation = 0
        self._handle: SessionHandle | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._restart_task: asyncio.Task[None] | None = None
        self._start_task: asyncio.Task[SessionHandle] | None = None

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def handle(self) -> SessionHandle | None:
        """The active session handle, if a start has succeeded."""
        return self._handle

    @property
    def restart_pending(self) -> bool:
        task = self._restart_task
        return task is not None and not task.done()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Start a new session.

        Only valid from ``idle`` or ``disconnected``; otherwise (notably while
        another start is in flight) this is a no-op returning ``False``. The
        backend call runs in its own task so a teardown or stop can cancel it
        before anything else touches the session.
        """
        if self._state not in (ReconcilerState.IDLE, ReconcilerState.DISCONNECTED):
            _logger.debug("Start ignored in state %s", self._state)
            return False

        self._cancel_restart()
        self._state = ReconcilerState.STARTING
        self._generation += 1
        generation = self._generation
        _logger.info("Starting session generation=%d", generation)

        task = asyncio.create_task(self._start_backend(), name=f"pywabridge-start-{generation}")
        self._start_task = task
        try:
            handle = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                _logger.debug("Session start generation=%d preempted", generation)
                return False
            raise
        except StartupError:
            if generation != self._generation:
                return False
            delay = self._config.startup_retry_delay
            _logger.warning("Session start failed; retrying in %.1fs", delay, exc_info=True)
            self._state = ReconcilerState.DISCONNECTED
            self._schedule_restart(delay)
            return False
        finally:
            if self._start_task is task:
                self._start_task = None

        if generation != self._generation:
            _logger.debug("Discarding session from preempted start generation=%d", generation)
            await self._close_handle(handle)
            return False

        self._handle = handle
        self._consumer = asyncio.create_task(
            self._consume(handle, generation),
            name=f"pywabridge-session-{generation}",
        )
        return True

    async def request_teardown_and_restart(self) -> None:
        """Log out, discard credentials and re-arm pairing, whatever the phase."""
        if self._state is ReconcilerState.STOPPED:
            return
        _logger.info("Teardown requested in state %s", self._state)
        self._cancel_restart()
        self._generation += 1
        await self._cancel_start()
        handle = await self._detach()
        self._state = ReconcilerState.DISCONNECTED
        if handle is not None:
            await self._close_handle(handle)
        await self._publish_disconnected()
        await self._teardown_credentials()
        self._schedule_restart(self._config.terminal_restart_delay)

    async def stop(self) -> None:
        self._state = ReconcilerState.STOPPED
        self._generation += 1
        self._cancel_restart()
        await self._cancel_start()
        handle = await self._detach()
        if handle is not None:
            await self._close_handle(handle)
        _logger.info("Session reconciler stopped")

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def _consume(self, handle: SessionHandle, generation: int) -> None:
        cause = DisconnectCause(reason="event stream ended")
        try:
            async for event in handle.events():
                if generation != self._generation:
                    return
                if isinstance(event, PairingChallengeIssued):
                    await self._on_challenge(event.token)
                elif isinstance(event, ConnectionOpened):
                    await self._on_opened(event.identity)
                elif isinstance(event, ConnectionClosed):
                    cause = event.cause
                    break
                else:
                    _logger.debug("Ignoring unknown session event %s", type(event).__name__)
        except Exception:
            _logger.warning("Session event stream failed", exc_info=True)
            cause = DisconnectCause(reason="event stream error")

        if generation != self._generation:
            return
        await self._on_closed(handle, cause)

    async def _on_challenge(self, token: str) -> None:
        if self._state not in (ReconcilerState.STARTING, ReconcilerState.AWAITING_CHALLENGE):
            _logger.debug("Ignoring pairing challenge in state %s", self._state)
            return
        try:
            artifact = await self._renderer(token)
        except ChallengeTransformError:
            _logger.warning("Pairing challenge could not be rendered", exc_info=True)
            return

        self._store.set_phase(ConnectionPhase.AWAITING_CHALLENGE, challenge=artifact)
        self._state = ReconcilerState.AWAITING_CHALLENGE
        _logger.info("Pairing challenge issued")
        await self._fanout.broadcast_phase(ConnectionPhase.AWAITING_CHALLENGE)
        await self._fanout.broadcast_challenge(artifact)

    async def _on_opened(self, identity: SessionIdentity) -> None:
        summary = identity.account_summary()
        self._store.set_phase(ConnectionPhase.CONNECTED, account=summary)
        self._state = ReconcilerState.CONNECTED
        _logger.info("Session connected: %s", summary)
        await self._fanout.broadcast_phase(ConnectionPhase.CONNECTED)
        await self._fanout.broadcast_account(summary)
        await self._fanout.broadcast_challenge(None)

    async def _on_closed(self, handle: SessionHandle, cause: DisconnectCause) -> None:
        kind = classify_disconnect(cause, terminal_status_codes=self._config.terminal_status_codes)
        _logger.info("Session closed kind=%s cause=%s", kind, redact_for_log(cause))
        self._handle = None
        self._consumer = None
        self._state = ReconcilerState.DISCONNECTED
        await self._publish_disconnected()
        await self._close_handle(handle)
        if kind is DisconnectKind.TERMINAL:
            await self._teardown_credentials()
        self._schedule_restart(
            restart_delay(
                kind,
                reconnect_delay=self._config.reconnect_delay,
                terminal_restart_delay=self._config.terminal_restart_delay,
            )
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _publish_disconnected(self) -> None:
        self._store.set_phase(ConnectionPhase.DISCONNECTED)
        await self._fanout.broadcast_phase(ConnectionPhase.DISCONNECTED)
        await self._fanout.broadcast_account(None)

    async def _start_backend(self) -> SessionHandle:
        try:
            return await self._backend.start()
        except StartupError:
            raise
        except Exception as exc:
            raise StartupError(f"Session start failed: {exc}") from exc

    async def _cancel_start(self) -> None:
        """Cancel an in-flight ``backend.start()`` and wait until it has unwound."""
        task = self._start_task
        self._start_task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

    async def _teardown_backend(self) -> None:
        try:
            await self._backend.teardown()
        except TeardownError:
            raise
        except Exception as exc:
            raise TeardownError(f"Credential teardown failed: {exc}") from exc

    async def _teardown_credentials(self) -> None:
        try:
            await self._teardown_backend()
        except TeardownError:
            _logger.warning("Credential teardown failed; re-arming pairing anyway", exc_info=True)
        else:
            _logger.info("Session credentials discarded")

    async def _detach(self) -> SessionHandle | None:
        """Forget the active handle and wait for its consumer to finish."""
        handle = self._handle
        consumer = self._consumer
        self._handle = None
        self._consumer = None
        if consumer is not None and consumer is not asyncio.current_task() and not consumer.done():
            consumer.cancel()
            await asyncio.wait([consumer])
        return handle

    async def _close_handle(self, handle: SessionHandle) -> None:
        try:
            await handle.close()
        except Exception:
            _logger.debug("Session handle close failed", exc_info=True)

    def _schedule_restart(self, delay: float) -> None:
        self._cancel_restart()
        if self._state is ReconcilerState.STOPPED:
            return
        _logger.info("Restarting session in %.1fs", delay)
        self._restart_task = asyncio.create_task(self._restart_after(delay), name="pywabridge-restart")

    async def _restart_after(self, delay: float) -> None:
        await self._sleep(delay)
        if self._restart_task is asyncio.current_task():
            self._restart_task = None
        await self.start()

    def _cancel_restart(self) -> None:
        task = self._restart_task
        self._restart_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
