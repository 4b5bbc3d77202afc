"""Decode Gemini JSON envelopes from non-streaming responses."""
from __future__ import annotations

import json
from typing import Any

import httpx

from ..exceptions import ApiError, InvalidResponseFormat, NoCandidates, NoContent


def decode_envelope(response: httpx.Response) -> dict[str, Any] | list[Any]:
    """Return the decoded JSON body, raising on error envelopes."""

    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidResponseFormat(
            f"Invalid response format (status {response.status_code}): {response.text[:200]}"
        ) from exc
    if isinstance(data, dict):
        if "error" in data:
            raise ApiError.from_envelope(data, status_code=response.status_code)
        return data
    if isinstance(data, list):
        return data
    raise InvalidResponseFormat(f"Invalid response format: unexpected {type(data).__name__} body")


def _join_parts(parts: Any) -> str:
    if not isinstance(parts, list):
        return ""
    return "".join(str(part["text"]) for part in parts if isinstance(part, dict) and "text" in part)


def extract_candidates(data: dict[str, Any] | list[Any]) -> list[dict[str, Any]]:
    if isinstance(data, list):
        # ``streamGenerateContent`` without ``alt=sse`` answers with a JSON array.
        first = data[0] if data else {}
        candidates = first.get("candidates") if isinstance(first, dict) else None
    else:
        candidates = data.get("candidates")
    if not isinstance(candidates, list):
        return []
    return [candidate for candidate in candidates if isinstance(candidate, dict)]


def extract_text(data: dict[str, Any] | list[Any]) -> str:
    """Concatenate the text parts of the first candidate."""

    candidates = extract_candidates(data)
    if not candidates:
        content = data.get("content") if isinstance(data, dict) else None
        if isinstance(content, dict) and "parts" in content:
            return _join_parts(content["parts"])
        keys = sorted(data) if isinstance(data, dict) else []
        raise NoCandidates(f"No candidates in response. Response structure: {json.dumps(keys)}")

    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not parts:
        raise NoContent("No parts in candidate content")
    text = _join_parts(parts)
    if not text:
        raise NoContent("No text content found in response parts")
    return text


def extract_embeddings(data: dict[str, Any] | list[Any]) -> list[float] | list[list[float]]:
    """Return a single vector or one vector per embedded content."""

    if isinstance(data, dict):
        embedding = data.get("embedding")
        if isinstance(embedding, dict) and isinstance(embedding.get("values"), list):
            return [float(value) for value in embedding["values"]]
        embeddings = data.get("embeddings")
        if isinstance(embeddings, list):
            return [
                [float(value) for value in (item.get("values") or [])] if isinstance(item, dict) else []
                for item in embeddings
            ]
    raise InvalidResponseFormat("No embeddings found in response")


__all__ = ["decode_envelope", "extract_candidates", "extract_text", "extract_embeddings"]
