"""Convenience wrappers around raw Gemini HTTP responses."""
from __future__ import annotations

from typing import Any

import httpx

from .envelope import decode_envelope, extract_candidates, extract_embeddings, extract_text


class _EnvelopeResponse:
    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    def raw(self) -> httpx.Response:
        return self._response

    def json(self) -> dict[str, Any] | list[Any]:
        """Return the decoded body; raises on API error envelopes."""

        return decode_envelope(self._response)

    def status(self) -> int:
        return self._response.status_code

    def headers(self) -> dict[str, str]:
        return dict(self._response.headers)

    def successful(self) -> bool:
        return self._response.is_success


class GenerateResponse(_EnvelopeResponse):
    """Wrapper for ``generateContent`` responses."""

    def text(self) -> str:
        return extract_text(self.json())

    def candidates(self) -> list[dict[str, Any]]:
        return extract_candidates(self.json())

    def candidate(self) -> dict[str, Any] | None:
        candidates = self.candidates()
        return candidates[0] if candidates else None

    def usage(self) -> dict[str, Any] | None:
        data = self.json()
        return data.get("usageMetadata") if isinstance(data, dict) else None

    def model_version(self) -> str | None:
        data = self.json()
        return data.get("modelVersion") if isinstance(data, dict) else None


class EmbeddingResponse(_EnvelopeResponse):
    """Wrapper for ``embedContent`` and ``batchEmbedContents`` responses."""

    def values(self) -> list[float] | list[list[float]]:
        return extract_embeddings(self.json())

    def embeddings(self) -> list[float] | list[list[float]]:
        return self.values()


__all__ = ["GenerateResponse", "EmbeddingResponse"]
