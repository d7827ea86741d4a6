"""High-level facade wiring the store, observers and reconciler together."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from pywabridge._qr import render_challenge
from pywabridge._redact import mask_phone
from pywabridge._transport import ObserverTransport
from pywabridge.config import BridgeConfig
from pywabridge.exceptions import NotConnectedError, SendError
from pywabridge.fanout import Fanout
from pywabridge.liveness import LivenessMonitor
from pywabridge.observers import ObserverId, ObserverRegistry
from pywabridge.reconciler import ChallengeRenderer, SessionReconciler
from pywabridge.session import SessionBackend
from pywabridge.state.events import ConnectionPhase
from pywabridge.state.store import StateSnapshot, StateStore

_logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


class Bridge:
    """Bridge one external session to any number of observers.

    Usage::

        async with Bridge(backend, config=config) as bridge:
            observer_id = bridge.on_observer_connected(transport)
            ...
    """

    def __init__(
        self,
        backend: SessionBackend,
        *,
        config: BridgeConfig | None = None,
        renderer: ChallengeRenderer = render_challenge,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or BridgeConfig()
        self._store = StateStore()
        self._registry = ObserverRegistry()
        self._fanout = Fanout(self._registry, send_timeout=self._config.send_timeout)
        self._liveness = LivenessMonitor(self._registry, interval=self._config.heartbeat_interval)
        self._reconciler = SessionReconciler(
            backend,
            self._store,
            self._fanout,
            config=self._config,
            renderer=renderer,
            sleep=sleep,
        )
        self._snapshot_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Bridge:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        await self._reconciler.start()

    async def stop(self) -> None:
        await self._reconciler.stop()
        for task in list(self._snapshot_tasks):
            task.cancel()
        await self._liveness.close()
        self._registry.clear()

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def observers(self) -> ObserverRegistry:
        return self._registry

    @property
    def reconciler(self) -> SessionReconciler:
        return self._reconciler

    # ------------------------------------------------------------------
    # Command-intake surface
    # ------------------------------------------------------------------

    def current_snapshot(self) -> StateSnapshot:
        return self._store.snapshot()

    def is_sendable(self) -> bool:
        return self._store.phase is ConnectionPhase.CONNECTED

    async def request_teardown_and_restart(self) -> None:
        await self._reconciler.request_teardown_and_restart()

    def destination_for(self, phone: str) -> str:
        """Reduce a phone number to digits and append the server suffix."""
        digits = _NON_DIGITS.sub("", phone)
        if not digits:
            raise ValueError("phone must contain at least one digit")
        return f"{digits}{self._config.destination_suffix}"

    async def send_message(self, phone: str, text: str) -> None:
        """Send a text message through the connected session.

        Raises :class:`NotConnectedError` when no session is connected and
        :class:`SendError` when the session rejects the message. Failed sends
        are never retried.
        """
        destination = self.destination_for(phone)
        handle = self._reconciler.handle
        if handle is None or not self.is_sendable():
            raise NotConnectedError("Session not connected", destination=destination)
        try:
            await handle.send(destination, text)
        except SendError:
            raise
        except Exception as exc:
            raise SendError(f"Send to {mask_phone(destination)} failed: {exc}", destination=destination) from exc
        _logger.debug("Message sent to %s", mask_phone(destination))

    # ------------------------------------------------------------------
    # Transport surface
    # ------------------------------------------------------------------

    def on_observer_connected(self, transport: ObserverTransport) -> ObserverId:
        """Register an observer and push it the live current state."""
        observer_id = self._registry.register(transport)
        observer = self._registry.get(observer_id)
        assert observer is not None  # noqa: S101
        self._liveness.watch(observer_id)

        task = asyncio.create_task(
            self._fanout.send_snapshot(observer, self._store),
            name=f"pywabridge-snapshot-{observer_id}",
        )
        self._snapshot_tasks.add(task)
        task.add_done_callback(self._snapshot_tasks.discard)
        return observer_id

    def on_observer_disconnected(self, observer_id: ObserverId) -> None:
        self._registry.unregister(observer_id)
