"""Registry of connected real-time observers."""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from typing import NewType

from pywabridge._transport import ObserverTransport

_logger = logging.getLogger(__name__)

ObserverId = NewType("ObserverId", str)


@dataclass(eq=False, slots=True)
class Observer:
    """A live transport plus its liveness task.

    ``send_lock`` serializes pushes to this observer so that events reach it
    in the order they were issued.
    """

    id: ObserverId
    transport: ObserverTransport
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    liveness: asyncio.Task[None] | None = None

    @property
    def is_live(self) -> bool:
        return not self.transport.closed


class ObserverRegistry:
    """Identity-keyed set of observers.

    Entries are independent of the state store: adding or removing an
    observer never changes the connection state.
    """

    def __init__(self) -> None:
        self._observers: dict[ObserverId, Observer] = {}

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer_id: object) -> bool:
        return observer_id in self._observers

    def register(self, transport: ObserverTransport) -> ObserverId:
        observer = Observer(id=ObserverId(secrets.token_hex(8)), transport=transport)
        self._observers[observer.id] = observer
        _logger.debug("Observer registered id=%s total=%d", observer.id, len(self._observers))
        return observer.id

    def unregister(self, observer_id: ObserverId) -> bool:
        """Remove an observer. Returns ``False`` if it was already gone."""
        observer = self._observers.pop(observer_id, None)
        if observer is None:
            return False

        task = observer.liveness
        observer.liveness = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        _logger.debug("Observer unregistered id=%s total=%d", observer_id, len(self._observers))
        return True

    def get(self, observer_id: ObserverId) -> Observer | None:
        return self._observers.get(observer_id)

    def list_live(self) -> tuple[Observer, ...]:
        """Snapshot of the observers whose transport is still open.

        Observers found closed are unregistered on the way. Each call returns
        a fresh tuple, so independent traversals never see concurrent
        registrations or removals.
        """
        live: list[Observer] = []
        for observer in list(self._observers.values()):
            if observer.is_live:
                live.append(observer)
            else:
                _logger.debug("Pruning closed observer id=%s", observer.id)
                self.unregister(observer.id)
        return tuple(live)

    def clear(self) -> None:
        for observer_id in list(self._observers):
            self.unregister(observer_id)
