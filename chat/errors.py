from typing import Optional

from shared.models import TerminationReason

PEER_RESET_ERRORS = (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)


class ChatError(Exception):
    """Base class for errors raised by the chat package."""


class SetupFailure(ChatError):
    """Creating, binding, accepting or connecting a socket failed."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code

    @classmethod
    def from_os_error(cls, action: str, error: OSError) -> "SetupFailure":
        return cls(f"{action} failed: {error.strerror or error}", error.errno)


def classify_io_error(error: OSError) -> TerminationReason:
    if isinstance(error, PEER_RESET_ERRORS):
        return TerminationReason.PEER_RESET
    return TerminationReason.IO_ERROR
