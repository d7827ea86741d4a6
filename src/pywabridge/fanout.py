"""Best-effort push of state changes to every registered observer."""

from __future__ import annotations

import asyncio
import logging

from pywabridge.observers import Observer, ObserverRegistry
from pywabridge.state.events import ConnectionPhase, WireEvent
from pywabridge.state.store import StateStore

_logger = logging.getLogger(__name__)


class Fanout:
    """Serialize wire events and deliver them to all live observers.

    A failing or stalled observer is dropped from the registry and never affects
    delivery to the others. Each broadcast waits for every delivery to finish,
    so consecutive broadcasts reach a given observer in issue order.
    """

    def __init__(self, registry: ObserverRegistry, *, send_timeout: float = 10.0) -> None:
        self._registry = registry
        self._send_timeout = send_timeout

    async def broadcast_phase(self, phase: ConnectionPhase) -> None:
        await self.broadcast(WireEvent.phase(phase))

    async def broadcast_challenge(self, artifact: str | None) -> None:
        await self.broadcast(WireEvent.challenge(artifact))

    async def broadcast_account(self, summary: str | None) -> None:
        await self.broadcast(WireEvent.account(summary))

    async def broadcast(self, event: WireEvent) -> None:
        observers = self._registry.list_live()
        if not observers:
            _logger.debug("No observers for %s event", event.kind)
            return
        text = event.to_json()
        await asyncio.gather(*(self._deliver(observer, [text]) for observer in observers))
        _logger.debug("Broadcast %s event to %d observer(s)", event.kind, len(observers))

    async def send_snapshot(self, observer: Observer, store: StateStore) -> None:
        """Push the live current state to a single (new) observer.

        The store is read once the observer's send lock is held, so the
        snapshot is never older than a broadcast that reached it first.
        """
        async with observer.send_lock:
            frames = [event.to_json() for event in store.snapshot().to_wire_events()]
            await self._deliver_locked(observer, frames)

    async def _deliver(self, observer: Observer, frames: list[str]) -> None:
        async with observer.send_lock:
            await self._deliver_locked(observer, frames)

    async def _deliver_locked(self, observer: Observer, frames: list[str]) -> None:
        if observer.id not in self._registry:
            return
        try:
            async with asyncio.timeout(self._send_timeout):
                for text in frames:
                    await observer.transport.send_text(text)
        except TimeoutError:
            _logger.warning(
                "Dropping observer id=%s: delivery did not complete within %.1fs",
                observer.id,
                self._send_timeout,
            )
            self._registry.unregister(observer.id)
        except Exception:
            _logger.warning("Dropping observer id=%s after failed delivery", observer.id, exc_info=True)
            self._registry.unregister(observer.id)
