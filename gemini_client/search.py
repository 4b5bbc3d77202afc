"""Cosine similarity ranking for semantic search."""
from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from .exceptions import DimensionMismatch


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A document with its similarity to the query and its input position."""

    text: str
    similarity: float
    index: int

    def as_dict(self) -> dict[str, object]:
        return {"text": self.text, "similarity": self.similarity, "index": self.index}


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine of the angle between ``a`` and ``b``.

    A zero vector has no direction; its similarity to anything is ``0.0`` so
    rankings stay total.
    """

    if len(a) != len(b):
        raise DimensionMismatch(f"Vectors must have the same length ({len(a)} != {len(b)})")
    dot_product = 0.0
    magnitude_a = 0.0
    magnitude_b = 0.0
    for left, right in zip(a, b):
        dot_product += left * right
        magnitude_a += left * left
        magnitude_b += right * right
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    similarity = dot_product / (math.sqrt(magnitude_a) * math.sqrt(magnitude_b))
    return max(-1.0, min(1.0, similarity))


def rank_documents(
    query_vector: Sequence[float],
    documents: Sequence[str],
    document_vectors: Sequence[Sequence[float]],
) -> list[SearchResult]:
    """Score every document against the query, most similar first."""

    results = [
        SearchResult(text=text, similarity=cosine_similarity(query_vector, vector), index=index)
        for index, (text, vector) in enumerate(zip(documents, document_vectors))
    ]
    return sorted(results, key=lambda result: result.similarity, reverse=True)


__all__ = ["SearchResult", "cosine_similarity", "rank_documents"]
