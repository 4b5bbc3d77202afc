"""Request payloads and response wrappers for content generation."""

from .payload import build_embedding_payload, build_generation_payload
from .prompt import PromptBuilder
from .responses import EmbeddingResponse, GenerateResponse

__all__ = [
    "build_embedding_payload",
    "build_generation_payload",
    "PromptBuilder",
    "EmbeddingResponse",
    "GenerateResponse",
]
