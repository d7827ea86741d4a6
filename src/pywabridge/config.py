"""Bridge configuration for pywabridge."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pywabridge.exceptions import BridgeConfigError


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise BridgeConfigError(f"{env_key} must be a number, got {value!r}") from exc


def _env_int(env_key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise BridgeConfigError(f"{env_key} must be an integer, got {value!r}") from exc


def _env_codes(env_key: str, value: str) -> frozenset[int]:
    return frozenset(_env_int(env_key, part.strip()) for part in value.split(",") if part.strip())


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    host : str
        Interface the HTTP/WebSocket server binds to.
    port : int
        Listening port. Defaults to ``3001``.
    reconnect_delay : float
        Seconds before restarting after a transient close.
    terminal_restart_delay : float
        Seconds before restarting after a logout or an explicit teardown,
        so that observers promptly receive a fresh pairing challenge.
    startup_retry_delay : float
        Seconds before retrying when the session fails to start at all.
    send_timeout : float
        Seconds a single observer delivery may take before the observer is
        dropped. Bounds how long a stalled peer can hold up a broadcast.
    heartbeat_interval : float
        Seconds between liveness pings sent to each observer.
    terminal_status_codes : frozenset[int]
        Close status codes treated as a logout (credentials are discarded).
    destination_suffix : str
        Server part appended to a phone number to form a send destination.
    backend : str or None
        Import path (``"package.module:attr"``) of a callable taking the
        config and returning a :class:`~pywabridge.session.SessionBackend`.
    log_level : str
        Root log level used by the entry point.
    """

    host: str = "0.0.0.0"
    port: int = 3001
    reconnect_delay: float = 5.0
    terminal_restart_delay: float = 1.0
    startup_retry_delay: float = 10.0
    send_timeout: float = 10.0
    heartbeat_interval: float = 30.0
    terminal_status_codes: frozenset[int] = frozenset({401})
    destination_suffix: str = "@s.whatsapp.net"
    backend: str | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for name in ("reconnect_delay", "terminal_restart_delay", "startup_retry_delay"):
            if getattr(self, name) < 0:
                raise BridgeConfigError(f"{name} must not be negative")
        for name in ("send_timeout", "heartbeat_interval"):
            if getattr(self, name) <= 0:
                raise BridgeConfigError(f"{name} must be positive")
        if not 0 <= self.port <= 65535:
            raise BridgeConfigError(f"port out of range: {self.port}")

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Reads optional ``WABRIDGE_*`` variables, plus the bare ``PORT``
        variable honoured by most hosting platforms. Explicit keyword
        arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "WABRIDGE_HOST": "host",
            "WABRIDGE_DESTINATION_SUFFIX": "destination_suffix",
            "WABRIDGE_BACKEND": "backend",
            "WABRIDGE_LOG_LEVEL": "log_level",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "WABRIDGE_RECONNECT_DELAY": "reconnect_delay",
            "WABRIDGE_TERMINAL_RESTART_DELAY": "terminal_restart_delay",
            "WABRIDGE_STARTUP_RETRY_DELAY": "startup_retry_delay",
            "WABRIDGE_SEND_TIMEOUT": "send_timeout",
            "WABRIDGE_HEARTBEAT_INTERVAL": "heartbeat_interval",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = _env_float(env_key, val)

        # WABRIDGE_PORT wins over the generic PORT.
        for env_key in ("PORT", "WABRIDGE_PORT"):
            val = env.get(env_key)
            if val is not None:
                config_kwargs["port"] = _env_int(env_key, val)

        codes_env = env.get("WABRIDGE_TERMINAL_STATUS_CODES")
        if codes_env is not None:
            config_kwargs["terminal_status_codes"] = _env_codes("WABRIDGE_TERMINAL_STATUS_CODES", codes_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
