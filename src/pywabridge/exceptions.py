"""Custom exception hierarchy for pywabridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all pywabridge errors."""


class BridgeConfigError(BridgeError):
    """Invalid or missing configuration."""


class StartupError(BridgeError):
    """The external session failed to initialize.

    Treated as transient: the reconciler retries after
    ``BridgeConfig.startup_retry_delay``.
    """


class ChallengeTransformError(BridgeError):
    """A pairing challenge could not be rendered into a displayable artifact."""


class SendError(BridgeError):
    """Outbound message dispatch failed."""

    def __init__(self, message: str, *, destination: str = "") -> None:
        self.destination = destination
        super().__init__(message)


class NotConnectedError(SendError):
    """A send was requested while the session is not connected."""


class TeardownError(BridgeError):
    """Discarding persisted session credentials failed.

    Logged only; the reconciler re-arms pairing regardless.
    """


class DeliveryError(BridgeError):
    """Pushing a wire event to a single observer failed."""

    def __init__(self, message: str, *, observer_id: str = "") -> None:
        self.observer_id = observer_id
        super().__init__(message)
