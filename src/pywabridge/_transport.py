"""Observer transport: protocol plus the aiohttp WebSocket implementation."""

from __future__ import annotations

from typing import Protocol

import aiohttp
from aiohttp import web

from pywabridge.exceptions import DeliveryError


class ObserverTransport(Protocol):
    """Structural transport interface used by the fan-out layer.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`WebSocketTransport`) concrete.
    """

    @property
    def closed(self) -> bool:
        ...

    async def send_text(self, text: str) -> None:
        ...

    async def ping(self) -> None:
        ...


class WebSocketTransport:
    """Wraps a prepared :class:`aiohttp.web.WebSocketResponse`."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send_text(self, text: str) -> None:
        if self._ws.closed:
            raise DeliveryError("WebSocket already closed")
        try:
            await self._ws.send_str(text)
        except (ConnectionResetError, RuntimeError, aiohttp.ClientError) as exc:
            raise DeliveryError(f"WebSocket send failed: {exc}") from exc

    async def ping(self) -> None:
        if self._ws.closed:
            raise DeliveryError("WebSocket already closed")
        try:
            await self._ws.ping()
        except (ConnectionResetError, RuntimeError, aiohttp.ClientError) as exc:
            raise DeliveryError(f"WebSocket ping failed: {exc}") from exc
