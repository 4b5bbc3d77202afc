"""Infrastructure adapters: HTTP transport and response cache."""

from .cache import FileCacheBackend, ResponseCache
from .http import GeminiTransport

__all__ = ["FileCacheBackend", "ResponseCache", "GeminiTransport"]
