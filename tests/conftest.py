from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from pywabridge.bridge import Bridge
from pywabridge.config import BridgeConfig
from pywabridge.exceptions import DeliveryError
from pywabridge.session import SessionEvent


@dataclass
class FakeTransport:
    frames: list[str] = field(default_factory=list)
    fail_send: bool = False
    fail_ping: bool = False
    closed: bool = False
    pings: int = 0

    async def send_text(self, text: str) -> None:
        if self.fail_send:
            raise DeliveryError("transport closed")
        self.frames.append(text)

    async def ping(self) -> None:
        self.pings += 1
        if self.fail_ping:
            raise DeliveryError("ping failed")

    def events(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.frames]


class FakeHandle:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[SessionEvent | None] = asyncio.Queue()
        self.sent: list[tuple[str, str]] = []
        self.send_error: Exception | None = None
        self.closed = False

    def emit(self, event: SessionEvent) -> None:
        self._queue.put_nowait(event)

    def end(self) -> None:
        self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[SessionEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def send(self, destination: str, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((destination, text))

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeBackend:
    handles: list[FakeHandle] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    start_errors: list[Exception] = field(default_factory=list)
    teardown_error: Exception | None = None
    gate: asyncio.Event | None = None
    in_flight: int = 0
    peak_in_flight: int = 0

    @property
    def start_calls(self) -> int:
        return self.calls.count("start")

    @property
    def teardown_calls(self) -> int:
        return self.calls.count("teardown")

    @property
    def latest(self) -> FakeHandle:
        return self.handles[-1]

    async def start(self) -> FakeHandle:
        self.calls.append("start")
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.start_errors:
                raise self.start_errors.pop(0)
        finally:
            self.in_flight -= 1
        handle = FakeHandle()
        self.handles.append(handle)
        return handle

    async def teardown(self) -> None:
        self.calls.append("teardown")
        if self.teardown_error is not None:
            raise self.teardown_error


@dataclass
class FakeSleep:
    """Records requested delays and returns (almost) immediately."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


async def fake_render(token: str) -> str:
    return f"artifact:{token}"


async def _wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def make_transport() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    return _wait_until


@pytest.fixture
def bridge(backend: FakeBackend, fake_sleep: FakeSleep) -> Bridge:
    return Bridge(backend, config=BridgeConfig(), renderer=fake_render, sleep=fake_sleep)
