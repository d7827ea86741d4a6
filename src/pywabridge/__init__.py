"""pywabridge - Fan out a chat session's pairing and connection state to real-time observers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pywabridge")
except PackageNotFoundError:
    __version__ = "0+local"
from pywabridge.bridge import Bridge
from pywabridge.config import BridgeConfig
from pywabridge.exceptions import (
    BridgeConfigError,
    BridgeError,
    ChallengeTransformError,
    DeliveryError,
    NotConnectedError,
    SendError,
    StartupError,
    TeardownError,
)
from pywabridge.observers import ObserverId
from pywabridge.session import (
    ConnectionClosed,
    ConnectionOpened,
    DisconnectCause,
    PairingChallengeIssued,
    SessionBackend,
    SessionEvent,
    SessionHandle,
    SessionIdentity,
)
from pywabridge.state.events import ConnectionPhase, WireEvent, WireEventKind
from pywabridge.state.store import StateSnapshot

__all__ = [
    "__version__",
    "Bridge",
    "BridgeConfig",
    "BridgeConfigError",
    "BridgeError",
    "ChallengeTransformError",
    "ConnectionClosed",
    "ConnectionOpened",
    "ConnectionPhase",
    "DeliveryError",
    "DisconnectCause",
    "NotConnectedError",
    "ObserverId",
    "PairingChallengeIssued",
    "SendError",
    "SessionBackend",
    "SessionEvent",
    "SessionHandle",
    "SessionIdentity",
    "StartupError",
    "StateSnapshot",
    "TeardownError",
    "WireEvent",
    "WireEventKind",
]
