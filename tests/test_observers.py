from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from pywabridge.fanout import Fanout
from pywabridge.liveness import LivenessMonitor
from pywabridge.observers import ObserverId, ObserverRegistry
from pywabridge.state.events import ConnectionPhase
from pywabridge.state.store import StateStore


def test_unregister_is_idempotent(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    observer_id = registry.register(make_transport())

    assert registry.unregister(observer_id) is True
    assert registry.unregister(observer_id) is False
    assert observer_id not in registry
    assert len(registry) == 0


def test_unregister_unknown_id_is_noop() -> None:
    registry = ObserverRegistry()

    assert registry.unregister(ObserverId("missing")) is False


def test_list_live_is_a_stable_snapshot(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    first = registry.register(make_transport())
    second = registry.register(make_transport())

    live = registry.list_live()
    registry.unregister(first)
    registry.register(make_transport())

    assert [obs.id for obs in live] == [first, second]
    # A fresh traversal sees the current membership.
    assert len(registry.list_live()) == 2
    assert first not in {obs.id for obs in registry.list_live()}


def test_list_live_prunes_closed_transports(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    open_id = registry.register(make_transport())
    closed_id = registry.register(make_transport(closed=True))

    assert [obs.id for obs in registry.list_live()] == [open_id]
    assert closed_id not in registry
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_fanout_isolates_failing_observer(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    fanout = Fanout(registry)
    healthy_a = make_transport()
    broken = make_transport(fail_send=True)
    healthy_b = make_transport()
    id_a = registry.register(healthy_a)
    broken_id = registry.register(broken)
    id_b = registry.register(healthy_b)

    await fanout.broadcast_phase(ConnectionPhase.CONNECTED)

    assert healthy_a.events() == [{"kind": "phase", "value": "connected"}]
    assert healthy_b.events() == [{"kind": "phase", "value": "connected"}]
    assert broken_id not in registry
    assert id_a in registry and id_b in registry


@pytest.mark.asyncio
async def test_fanout_preserves_per_observer_order(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    fanout = Fanout(registry)
    transport = make_transport()
    registry.register(transport)

    await fanout.broadcast_phase(ConnectionPhase.CONNECTED)
    await fanout.broadcast_account("Alice (+15551230000)")
    await fanout.broadcast_challenge(None)

    assert [event["kind"] for event in transport.events()] == ["phase", "account", "challenge"]


@pytest.mark.asyncio
async def test_send_snapshot_targets_single_observer(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    fanout = Fanout(registry)
    store = StateStore()
    store.set_phase(ConnectionPhase.AWAITING_CHALLENGE, challenge="data:image/png;base64,AAA")
    existing = make_transport()
    registry.register(existing)
    newcomer = make_transport()
    newcomer_id = registry.register(newcomer)
    observer = registry.get(newcomer_id)
    assert observer is not None

    await fanout.send_snapshot(observer, store)

    assert newcomer.events() == [
        {"kind": "phase", "value": "awaiting_challenge"},
        {"kind": "challenge", "value": "data:image/png;base64,AAA"},
        {"kind": "account", "value": None},
    ]
    assert existing.frames == []


@pytest.mark.asyncio
async def test_liveness_pings_until_unregistered(
    make_transport: Callable[..., Any],
    wait_until: Callable[..., Any],
) -> None:
    registry = ObserverRegistry()
    monitor = LivenessMonitor(registry, interval=30.0, sleep=lambda _delay: asyncio.sleep(0))
    transport = make_transport()
    observer_id = registry.register(transport)

    monitor.watch(observer_id)
    await wait_until(lambda: transport.pings >= 3)

    observer = registry.get(observer_id)
    assert observer is not None
    task = observer.liveness
    assert task is not None
    registry.unregister(observer_id)
    await asyncio.wait([task])
    assert task.cancelled()


@pytest.mark.asyncio
async def test_liveness_prunes_observer_on_failed_ping(
    make_transport: Callable[..., Any],
    wait_until: Callable[..., Any],
) -> None:
    registry = ObserverRegistry()
    monitor = LivenessMonitor(registry, interval=30.0, sleep=lambda _delay: asyncio.sleep(0))
    transport = make_transport(fail_ping=True)
    observer_id = registry.register(transport)

    monitor.watch(observer_id)
    await wait_until(lambda: observer_id not in registry)

    assert transport.pings == 1


def test_liveness_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        LivenessMonitor(ObserverRegistry(), interval=0)


@pytest.mark.asyncio
async def test_fanout_drops_observer_whose_send_never_completes(make_transport: Callable[..., Any]) -> None:
    class HangingTransport:
        closed = False

        async def send_text(self, text: str) -> None:
            await asyncio.Event().wait()

        async def ping(self) -> None:
            return None

    registry = ObserverRegistry()
    fanout = Fanout(registry, send_timeout=0.01)
    healthy = make_transport()
    registry.register(healthy)
    hanging_id = registry.register(HangingTransport())

    await asyncio.wait_for(fanout.broadcast_phase(ConnectionPhase.CONNECTED), timeout=1)
    await fanout.broadcast_account("Alice (+15551230000)")

    assert hanging_id not in registry
    assert [event["kind"] for event in healthy.events()] == ["phase", "account"]


@pytest.mark.asyncio
async def test_liveness_close_cancels_every_heartbeat(make_transport: Callable[..., Any]) -> None:
    registry = ObserverRegistry()
    monitor = LivenessMonitor(registry, interval=30.0)
    ids = [registry.register(make_transport()) for _ in range(2)]
    for observer_id in ids:
        monitor.watch(observer_id)
    tasks = [registry.get(observer_id).liveness for observer_id in ids]  # type: ignore[union-attr]

    await monitor.close()

    assert all(task is not None and task.cancelled() for task in tasks)
    # Closing the monitor leaves registration to the registry.
    assert all(observer_id in registry for observer_id in ids)
