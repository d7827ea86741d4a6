"""aiohttp application: observer WebSocket stream plus HTTP command intake."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from aiohttp import WSMsgType, web
from pydantic import ValidationError

from pywabridge._redact import redact_for_log
from pywabridge._transport import WebSocketTransport
from pywabridge.bridge import Bridge
from pywabridge.exceptions import NotConnectedError, SendError
from pywabridge.models.commands import CommandResult, SendRequest, StatusResponse

_logger = logging.getLogger(__name__)

BRIDGE_KEY: web.AppKey[Bridge] = web.AppKey("bridge", Bridge)

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _result(success: bool, *, error: str | None = None, status: int = 200) -> web.Response:
    body = CommandResult(success=success, error=error).model_dump(exclude_none=True)
    return web.json_response(body, status=status)


@web.middleware
async def _cors_middleware(request: web.Request, handler: _Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=_CORS_HEADERS)
    response = await handler(request)
    if not response.prepared:
        response.headers.update(_CORS_HEADERS)
    return response


async def _handle_observer(request: web.Request) -> web.StreamResponse:
    bridge = request.app[BRIDGE_KEY]
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    observer_id = bridge.on_observer_connected(WebSocketTransport(ws))
    _logger.info("Observer connected id=%s remote=%s", observer_id, request.remote)
    try:
        # Observers are receive-only; inbound frames are drained and ignored.
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                _logger.debug("Observer id=%s socket error", observer_id, exc_info=ws.exception())
                break
    finally:
        bridge.on_observer_disconnected(observer_id)
        _logger.info("Observer disconnected id=%s", observer_id)
    return ws


async def _handle_send(request: web.Request) -> web.Response:
    bridge = request.app[BRIDGE_KEY]
    try:
        payload = await request.json()
        send = SendRequest.model_validate(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
        return _result(False, error=f"Invalid request: {exc}", status=400)

    _logger.debug("Send requested %s", redact_for_log(send))
    try:
        await bridge.send_message(send.phone, send.message)
    except NotConnectedError:
        return _result(False, error="Session not connected", status=400)
    except SendError as exc:
        _logger.error("Failed to send message: %s", exc)
        return _result(False, error="Send failed", status=500)
    return _result(True)


async def _handle_logout(request: web.Request) -> web.Response:
    bridge = request.app[BRIDGE_KEY]
    await bridge.request_teardown_and_restart()
    return _result(True)


async def _handle_status(request: web.Request) -> web.Response:
    bridge = request.app[BRIDGE_KEY]
    live = bridge.observers.list_live()
    status = StatusResponse.from_snapshot(bridge.current_snapshot(), observers=len(live))
    return web.json_response(status.model_dump(mode="json"))


def build_app(bridge: Bridge) -> web.Application:
    """Create the application. The bridge's lifecycle stays with the caller."""
    app = web.Application(middlewares=[_cors_middleware])
    app[BRIDGE_KEY] = bridge
    app.router.add_get("/", _handle_observer)
    app.router.add_post("/send", _handle_send)
    app.router.add_post("/logout", _handle_logout)
    app.router.add_get("/status", _handle_status)
    return app


async def serve(bridge: Bridge, stop_event: asyncio.Event) -> None:
    """Run the HTTP/WebSocket server until *stop_event* is set."""
    config = bridge.config
    runner = web.AppRunner(build_app(bridge))
    await runner.setup()
    site = web.TCPSite(runner, host=config.host, port=config.port)
    try:
        await site.start()
        _logger.info("Server running on %s:%d", config.host, config.port)
        await stop_event.wait()
    finally:
        await runner.cleanup()
