"""Request body and URL builders for the Gemini REST API."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal
from urllib.parse import urlencode

from ..exceptions import InvalidPromptShape

EmbeddingTaskType = Literal[
    "RETRIEVAL_QUERY",
    "RETRIEVAL_DOCUMENT",
    "SEMANTIC_SIMILARITY",
    "CLASSIFICATION",
    "CLUSTERING",
]

Prompt = str | Mapping[str, Any] | Sequence[Mapping[str, Any]]

GENERATION_OPTION_KEYS = ("generationConfig", "safetySettings", "systemInstruction", "tools")
DEFAULT_EMBEDDING_TASK: EmbeddingTaskType = "RETRIEVAL_DOCUMENT"


def text_content(text: str) -> dict[str, Any]:
    """Wrap plain text into a single-part content unit."""

    return {"parts": [{"text": text}]}


def _validate_content(content: Any, position: int) -> dict[str, Any]:
    if not isinstance(content, Mapping):
        raise InvalidPromptShape(f"Content at position {position} must be a mapping, got {type(content).__name__}")
    parts = content.get("parts")
    if not isinstance(parts, Sequence) or isinstance(parts, (str, bytes)):
        raise InvalidPromptShape(f"Content at position {position} must carry a 'parts' list")
    for index, part in enumerate(parts):
        if not isinstance(part, Mapping):
            raise InvalidPromptShape(f"Part {index} of content {position} must be a mapping")
    return dict(content)


def normalise_contents(prompt: Prompt) -> list[dict[str, Any]]:
    """Return the ``contents`` list for a text or structured prompt."""

    if isinstance(prompt, str):
        return [text_content(prompt)]
    if isinstance(prompt, Mapping):
        return [_validate_content(prompt, 0)]
    if isinstance(prompt, Sequence) and not isinstance(prompt, bytes):
        if not prompt:
            raise InvalidPromptShape("Structured prompt must contain at least one content entry")
        return [_validate_content(content, index) for index, content in enumerate(prompt)]
    raise InvalidPromptShape(f"Unsupported prompt type: {type(prompt).__name__}")


def build_generation_payload(prompt: Prompt, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Map a prompt and generation options to a ``generateContent`` body.

    Only the option keys understood by the API are forwarded; anything else
    is dropped so callers can pass richer option mappings without breaking
    requests.
    """

    payload: dict[str, Any] = {"contents": normalise_contents(prompt)}
    for key in GENERATION_OPTION_KEYS:
        value = (options or {}).get(key)
        if value is not None:
            payload[key] = value
    return payload


def build_embedding_payload(
    content: str | Sequence[str],
    task_type: EmbeddingTaskType = DEFAULT_EMBEDDING_TASK,
    title: str | None = None,
) -> dict[str, Any]:
    texts = [content] if isinstance(content, str) else list(content)
    payload: dict[str, Any] = {
        "task_type": task_type,
        "content": {"parts": [{"text": text} for text in texts]},
    }
    if title is not None:
        payload["title"] = title
    return payload


def build_batch_embedding_payload(requests: Sequence[Mapping[str, Any]], model: str) -> dict[str, Any]:
    formatted: list[dict[str, Any]] = []
    for request in requests:
        if "content" not in request:
            raise InvalidPromptShape("Batch embedding requests need a 'content' entry")
        item: dict[str, Any] = {
            "model": f"models/{model}",
            "content": text_content(str(request["content"])),
            "task_type": request.get("task_type") or DEFAULT_EMBEDDING_TASK,
        }
        if request.get("title") is not None:
            item["title"] = request["title"]
        formatted.append(item)
    return {"requests": formatted}


def build_models_url(base_url: str, api_version: str) -> str:
    return f"{base_url.rstrip('/')}/{api_version}/models"


def build_model_info_url(base_url: str, api_version: str, model: str) -> str:
    return f"{build_models_url(base_url, api_version)}/{model}"


def build_model_url(
    base_url: str,
    api_version: str,
    model: str,
    endpoint: str,
    query: Mapping[str, str] | None = None,
) -> str:
    """Return ``{base}/{version}/models/{model}:{endpoint}`` with an optional query."""

    url = f"{build_model_info_url(base_url, api_version, model)}:{endpoint}"
    if query:
        url = f"{url}?{urlencode(dict(query))}"
    return url


__all__ = [
    "EmbeddingTaskType",
    "Prompt",
    "GENERATION_OPTION_KEYS",
    "DEFAULT_EMBEDDING_TASK",
    "text_content",
    "normalise_contents",
    "build_generation_payload",
    "build_embedding_payload",
    "build_batch_embedding_payload",
    "build_models_url",
    "build_model_info_url",
    "build_model_url",
]
