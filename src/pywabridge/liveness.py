"""Per-observer heartbeat.

Idle WebSockets are silently reclaimed by proxies and load balancers; a
periodic ping keeps them warm. Response timeouts are not enforced here: a
dead peer surfaces as a transport close, which unregisters the observer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pywabridge.observers import ObserverId, ObserverRegistry

_logger = logging.getLogger(__name__)


class LivenessMonitor:
    def __init__(
        self,
        registry: ObserverRegistry,
        *,
        interval: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError("heartbeat interval must be positive")
        self._registry = registry
        self._interval = interval
        self._sleep = sleep
        self._tasks: set[asyncio.Task[None]] = set()

    def watch(self, observer_id: ObserverId) -> None:
        """Start pinging a registered observer until it is unregistered."""
        observer = self._registry.get(observer_id)
        if observer is None:
            return
        if observer.liveness is not None and not observer.liveness.done():
            return
        task = asyncio.create_task(
            self._run(observer_id),
            name=f"pywabridge-liveness-{observer_id}",
        )
        observer.liveness = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        """Cancel every heartbeat task and wait for them to finish."""
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

    async def _run(self, observer_id: ObserverId) -> None:
        while True:
            await self._sleep(self._interval)
            observer = self._registry.get(observer_id)
            if observer is None:
                return
            try:
                await observer.transport.ping()
            except Exception:
                _logger.info("Pruning observer id=%s after failed heartbeat", observer_id, exc_info=True)
                self._registry.unregister(observer_id)
                return
