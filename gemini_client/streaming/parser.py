"""Extract text fragments from streamed Gemini event payloads."""
from __future__ import annotations

import json
from typing import Any


def parse_sse_data(data: str | None) -> list[str]:
    """Return every ``candidates[].content.parts[].text`` in order.

    Keep-alive and control events share the stream with content events, so
    anything that does not decode to the expected envelope yields an empty
    list instead of raising.
    """

    if not data:
        return []
    try:
        payload: Any = json.loads(data)
    except (ValueError, TypeError, RecursionError):
        return []
    if not isinstance(payload, dict):
        return []
    candidates = payload.get("candidates")
    if not isinstance(candidates, list):
        return []

    fragments: list[str] = []
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                fragments.append(part["text"])
    return fragments


__all__ = ["parse_sse_data"]
