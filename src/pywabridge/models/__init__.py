"""Request/response models for the command-intake surface."""

from pywabridge.models.commands import CommandResult, SendRequest, StatusResponse

__all__ = [
    "CommandResult",
    "SendRequest",
    "StatusResponse",
]
