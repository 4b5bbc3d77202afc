"""Shared exception hierarchy for the Gemini client."""
from __future__ import annotations

from typing import Any, Optional


class GeminiError(Exception):
    """Base exception for client specific failures."""


class GeminiConfigurationError(GeminiError):
    """Raised when the client cannot be built from the supplied settings."""


class InvalidPromptShape(GeminiError):
    """Raised when a structured prompt does not look like Gemini content."""


class InvalidResponseFormat(GeminiError):
    """Raised when the API answers with something other than a JSON envelope."""


class ApiError(GeminiError):
    """Raised when the API returns its own JSON error envelope."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        status: Optional[str] = None,
        code: Optional[int] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status = status
        self.code = code
        self.details = details

    @classmethod
    def from_envelope(cls, envelope: dict[str, Any], *, status_code: Optional[int] = None) -> "ApiError":
        error = envelope.get("error")
        if not isinstance(error, dict):
            error = {"message": str(error)} if error else {}
        message = error.get("message") or "Unknown API error"
        return cls(
            f"API Error: {message}",
            status_code=status_code,
            status=error.get("status"),
            code=error.get("code"),
            details=error.get("details"),
        )


class NoCandidates(GeminiError):
    """Raised when a well-formed response carries no candidates."""


class NoContent(GeminiError):
    """Raised when the first candidate carries no text."""


class DimensionMismatch(GeminiError, ValueError):
    """Raised when comparing vectors of different lengths."""


class GeminiTransportError(GeminiError):
    """Raised when a plain request fails after all retries."""

    def __init__(self, message: str, *, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.cause = cause


__all__ = [
    "GeminiError",
    "GeminiConfigurationError",
    "InvalidPromptShape",
    "InvalidResponseFormat",
    "ApiError",
    "NoCandidates",
    "NoContent",
    "DimensionMismatch",
    "GeminiTransportError",
]
