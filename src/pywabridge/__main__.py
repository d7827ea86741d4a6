"""Process entry point: ``python -m pywabridge``.

The session backend is loaded from an import path (``--backend`` or
``WABRIDGE_BACKEND``), e.g. ``mypkg.backends:create_backend``. The target is
called with the :class:`~pywabridge.config.BridgeConfig` and must return a
:class:`~pywabridge.session.SessionBackend`.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import importlib
import logging
import signal
import sys
from typing import Any

from pywabridge.bridge import Bridge
from pywabridge.config import BridgeConfig
from pywabridge.exceptions import BridgeConfigError
from pywabridge.server import serve
from pywabridge.session import SessionBackend

_LOG = logging.getLogger("pywabridge")


def load_backend(config: BridgeConfig) -> SessionBackend:
    """Resolve ``config.backend`` (``"module:attr"``) and build the backend."""
    target = (config.backend or "").strip()
    module_name, sep, attr = target.partition(":")
    if not module_name or not sep or not attr:
        raise BridgeConfigError("A session backend is required: set WABRIDGE_BACKEND or --backend to 'module:attr'")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise BridgeConfigError(f"Cannot load session backend {target!r}: {exc}") from exc
    backend: SessionBackend = factory(config)
    return backend


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pywabridge",
        description="Bridge a chat session's pairing/connection state to WebSocket observers.",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: WABRIDGE_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: WABRIDGE_PORT/PORT or 3001)")
    parser.add_argument("--backend", default=None, help="Session backend import path 'module:attr'")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def _run(config: BridgeConfig) -> None:
    backend = load_backend(config)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    async with Bridge(backend, config=config) as bridge:
        await serve(bridge, stop_event)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    overrides: dict[str, Any] = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.backend is not None:
        overrides["backend"] = args.backend
    if args.verbose:
        overrides["log_level"] = "DEBUG"

    try:
        config = BridgeConfig.from_env(**overrides)
    except BridgeConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(_run(config))
    except BridgeConfigError as exc:
        _LOG.error("%s", exc)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
