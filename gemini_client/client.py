"""Gemini API client: generation, streaming, embeddings and semantic search."""
from __future__ import annotations

import asyncio
import copy
import logging
import random
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

import httpx

from .config import Settings, load_settings
from .exceptions import GeminiConfigurationError, InvalidResponseFormat
from .generation.envelope import decode_envelope
from .generation.payload import (
    EmbeddingTaskType,
    Prompt,
    build_batch_embedding_payload,
    build_embedding_payload,
    build_generation_payload,
    build_model_info_url,
    build_model_url,
    build_models_url,
)
from .generation.prompt import PromptBuilder
from .generation.responses import EmbeddingResponse, GenerateResponse
from .infrastructure.cache import ResponseCache
from .infrastructure.http import GeminiTransport
from .search import SearchResult, rank_documents
from .streaming.call import StreamingCall
from .streaming.consumer import ChunkCallback, ReconnectingStreamConsumer
from .streaming.emitter import EmissionConfig, EventSink, SSEEmitter, run_with_emission
from .streaming.events import SSEEvent
from .streaming.reconnect import ReconnectPolicy

LOGGER = logging.getLogger(__name__)


class GeminiClient:
    """Asynchronous client for the Gemini generative language API.

    Instances are immutable from the caller's point of view: the ``with_*``
    methods return configured copies and leave the original untouched.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        settings: Settings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        cache: ResponseCache | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or load_settings()
        api_key = api_key or self._settings.gemini.api_key
        if not api_key:
            raise GeminiConfigurationError("A Gemini API key is required (pass api_key or set GEMINI__API_KEY)")
        self._model = model
        self._embedding_model: str | None = None
        self._reconnect_policy = ReconnectPolicy.from_settings(self._settings.reconnect)
        self._transport = GeminiTransport(
            api_key,
            self._settings.gemini,
            http_transport=http_transport,
            sleep=sleep,
        )
        self._cache = cache if cache is not None else ResponseCache.from_settings(self._settings.cache)
        self._sleep = sleep
        self._rng = rng

    # configuration

    @property
    def model_name(self) -> str:
        return self._model or self._settings.gemini.model

    @property
    def embedding_model_name(self) -> str:
        return self._embedding_model or self._settings.gemini.embedding_model

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        return self._reconnect_policy

    @property
    def headers(self) -> dict[str, str]:
        return self._transport.headers

    def _clone(self) -> "GeminiClient":
        return copy.copy(self)

    def with_model(self, model: str) -> "GeminiClient":
        clone = self._clone()
        clone._model = model
        return clone

    def with_embedding_model(self, model: str) -> "GeminiClient":
        clone = self._clone()
        clone._embedding_model = model
        return clone

    def with_reconnect_policy(self, policy: ReconnectPolicy) -> "GeminiClient":
        clone = self._clone()
        clone._reconnect_policy = policy
        return clone

    def with_headers(self, headers: Mapping[str, str]) -> "GeminiClient":
        clone = self._clone()
        clone._transport = self._transport.with_headers(headers)
        return clone

    def _url(self, model: str, endpoint: str, query: Mapping[str, str] | None = None) -> str:
        gemini = self._settings.gemini
        return build_model_url(gemini.base_url, gemini.api_version, model, endpoint, query)

    # generation

    def prompt(self, prompt: Prompt) -> PromptBuilder:
        return PromptBuilder(client=self, prompt=prompt)

    async def generate_content(
        self,
        prompt: Prompt,
        options: Mapping[str, Any] | None = None,
        model: str | None = None,
    ) -> GenerateResponse:
        """Generate content in one request and wrap the response."""

        payload = build_generation_payload(prompt, options)
        url = self._url(model or self.model_name, "generateContent")
        response = await self._post(url, payload)
        return GenerateResponse(response)

    def stream_generate_content(
        self,
        prompt: Prompt,
        on_chunk: ChunkCallback | None = None,
        options: Mapping[str, Any] | None = None,
        model: str | None = None,
        *,
        reconnect_policy: ReconnectPolicy | None = None,
    ) -> StreamingCall:
        """Start a streaming generation; must be called from a running event loop.

        ``on_chunk(fragment, event)`` is invoked for every text fragment in
        arrival order. The returned call is awaitable and cancellable, and its
        ``session`` accumulates the text as it arrives.
        """

        consumer = self._build_consumer(prompt, on_chunk, options, model, reconnect_policy)
        return StreamingCall(consumer)

    def stream_sse(
        self,
        prompt: Prompt,
        sink: EventSink | None = None,
        config: EmissionConfig | Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        model: str | None = None,
        *,
        on_chunk: ChunkCallback | None = None,
        reconnect_policy: ReconnectPolicy | None = None,
    ) -> StreamingCall:
        """Stream and re-emit fragments as ``event:``/``data:`` blocks to ``sink``.

        A done event follows a clean completion, an error event precedes the
        re-raised failure, and nothing is emitted after a cancellation. The
        sink is closed once the stream ends.
        """

        if config is None:
            config = EmissionConfig()
        elif not isinstance(config, EmissionConfig):
            config = EmissionConfig(**dict(config))
        emitter = SSEEmitter(config, sink)

        def _relay(fragment: str, event: SSEEvent) -> None:
            emitter.handle_chunk(fragment, event)
            if on_chunk is not None:
                on_chunk(fragment, event)

        consumer = self._build_consumer(prompt, _relay, options, model, reconnect_policy)
        call = StreamingCall(consumer, run_with_emission(consumer, emitter))
        if sink is not None:
            call.add_done_callback(lambda _call: sink.close())
        return call

    def _build_consumer(
        self,
        prompt: Prompt,
        on_chunk: ChunkCallback | None,
        options: Mapping[str, Any] | None,
        model: str | None,
        reconnect_policy: ReconnectPolicy | None,
    ) -> ReconnectingStreamConsumer:
        payload = build_generation_payload(prompt, options)
        url = self._url(model or self.model_name, "streamGenerateContent", {"alt": "sse"})
        return ReconnectingStreamConsumer(
            self._transport,
            url,
            payload,
            policy=reconnect_policy or self._reconnect_policy,
            on_chunk=on_chunk,
            sleep=self._sleep,
            rng=self._rng,
        )

    # embeddings

    async def embed_content(
        self,
        content: str | Sequence[str],
        task_type: EmbeddingTaskType = "RETRIEVAL_DOCUMENT",
        model: str | None = None,
        title: str | None = None,
    ) -> EmbeddingResponse:
        payload = build_embedding_payload(content, task_type, title)
        url = self._url(model or self.embedding_model_name, "embedContent")
        response = await self._post(url, payload)
        return EmbeddingResponse(response)

    async def batch_embed(
        self,
        requests: Sequence[Mapping[str, Any]],
        model: str | None = None,
    ) -> EmbeddingResponse:
        """Embed several contents in one ``batchEmbedContents`` call.

        Each request is a mapping with ``content`` and optional ``task_type``
        and ``title``.
        """

        model = model or self.embedding_model_name
        payload = build_batch_embedding_payload(requests, model)
        url = self._url(model, "batchEmbedContents")
        response = await self._post(url, payload)
        return EmbeddingResponse(response)

    async def search(
        self,
        query: str,
        documents: Sequence[str],
        model: str | None = None,
    ) -> list[SearchResult]:
        """Rank ``documents`` by cosine similarity to ``query``, most similar first.

        Document embeddings are requested concurrently; a single failure
        fails the whole search.
        """

        if not documents:
            return []
        query_response = await self.embed_content(query, "RETRIEVAL_QUERY", model)
        query_vector = _single_vector(query_response)
        document_responses = await asyncio.gather(
            *(self.embed_content(document, "RETRIEVAL_DOCUMENT", model) for document in documents)
        )
        document_vectors = [_single_vector(response) for response in document_responses]
        results = rank_documents(query_vector, documents, document_vectors)
        LOGGER.debug("Semantic search ranked | documents=%d top=%.4f", len(results), results[0].similarity)
        return results

    # models

    async def list_models(self) -> dict[str, Any]:
        gemini = self._settings.gemini
        response = await self._transport.get_json(build_models_url(gemini.base_url, gemini.api_version))
        return _json_object(response)

    async def get_model(self, model: str) -> dict[str, Any]:
        gemini = self._settings.gemini
        response = await self._transport.get_json(build_model_info_url(gemini.base_url, gemini.api_version, model))
        return _json_object(response)

    # transport

    async def _post(self, url: str, payload: Mapping[str, Any]) -> httpx.Response:
        key = self._cache.generate_key(url, payload) if self._cache.enabled else None
        if key is not None:
            cached = self._cache.get(key)
            if cached is not None:
                LOGGER.debug("Gemini cache hit | url=%s", url)
                return cached
        response = await self._transport.post_json(url, payload)
        decode_envelope(response)
        if key is not None and response.is_success:
            self._cache.set(key, response)
        return response


def _single_vector(response: EmbeddingResponse) -> list[float]:
    values = response.values()
    if values and isinstance(values[0], list):
        return values[0]
    return values  # type: ignore[return-value]


def _json_object(response: httpx.Response) -> dict[str, Any]:
    data = decode_envelope(response)
    if not isinstance(data, dict):
        raise InvalidResponseFormat("Expected a JSON object from the models endpoint")
    return data


__all__ = ["GeminiClient"]
