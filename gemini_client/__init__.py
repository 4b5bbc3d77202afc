"""Asynchronous Gemini API client with reconnecting SSE streaming."""

from .client import GeminiClient
from .config import Settings, load_settings
from .exceptions import (
    ApiError,
    DimensionMismatch,
    GeminiConfigurationError,
    GeminiError,
    GeminiTransportError,
    InvalidPromptShape,
    InvalidResponseFormat,
    NoCandidates,
    NoContent,
)
from .generation import EmbeddingResponse, GenerateResponse, PromptBuilder
from .search import SearchResult, cosine_similarity
from .streaming import (
    EmissionConfig,
    QueueSink,
    ReconnectPolicy,
    SSEEvent,
    StreamingCall,
    StreamingStats,
    StreamSession,
    StreamState,
    StreamTerminalFailure,
    StreamTransientFailure,
    TextStreamSink,
)

__all__ = [
    "GeminiClient",
    "Settings",
    "load_settings",
    "ApiError",
    "DimensionMismatch",
    "GeminiConfigurationError",
    "GeminiError",
    "GeminiTransportError",
    "InvalidPromptShape",
    "InvalidResponseFormat",
    "NoCandidates",
    "NoContent",
    "EmbeddingResponse",
    "GenerateResponse",
    "PromptBuilder",
    "SearchResult",
    "cosine_similarity",
    "EmissionConfig",
    "QueueSink",
    "ReconnectPolicy",
    "SSEEvent",
    "StreamingCall",
    "StreamingStats",
    "StreamSession",
    "StreamState",
    "StreamTerminalFailure",
    "StreamTransientFailure",
    "TextStreamSink",
]
