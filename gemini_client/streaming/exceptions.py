"""Streaming specific exceptions."""
from __future__ import annotations

from typing import Optional

from ..exceptions import GeminiError


class StreamError(GeminiError):
    """Base class for streaming failures."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class StreamTransientFailure(StreamError):
    """A dropped connection the reconnect policy classifies as retryable."""


class StreamTerminalFailure(StreamError):
    """Reconnects were exhausted or the failure is not retryable."""


class StreamSessionClosed(StreamError):
    """Raised when writing to a session that was already finished."""


__all__ = ["StreamError", "StreamTransientFailure", "StreamTerminalFailure", "StreamSessionClosed"]
