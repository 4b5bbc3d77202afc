from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from gemini_client.client import GeminiClient
from gemini_client.config import CacheSettings, GeminiSettings, Settings
from gemini_client.exceptions import ApiError, GeminiConfigurationError, GeminiTransportError, InvalidResponseFormat
from gemini_client.infrastructure.cache import FileCacheBackend, ResponseCache
from gemini_client.streaming.consumer import StreamState
from gemini_client.streaming.exceptions import StreamTerminalFailure
from gemini_client.streaming.reconnect import ReconnectPolicy

QUERY = [1.0, 0.0]
DOCUMENT_VECTORS = {
    "Cats purr when content": [0.3, 0.9539392014169456],
    "Kittens are young cats": [0.9, 0.4358898943540673],
}


def _client(settings, handler, **kwargs) -> GeminiClient:
    return GeminiClient(settings=settings, http_transport=httpx.MockTransport(handler), **kwargs)


def _text_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def test_missing_api_key_is_a_configuration_error(tmp_path) -> None:
    settings = Settings(gemini=GeminiSettings(api_key=""), cache=CacheSettings(path=tmp_path))

    with pytest.raises(GeminiConfigurationError):
        GeminiClient(settings=settings)


def test_generate_content_sends_key_header_and_options(settings) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return _text_response("Hello there")

    client = _client(settings, handler).with_headers({"X-Trace": "t-1"})

    response = asyncio.run(client.generate_content("Hi", {"generationConfig": {"temperature": 0}}))

    assert response.text() == "Hello there"
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )
    assert request.headers["x-goog-api-key"] == "test-key"
    assert request.headers["X-Trace"] == "t-1"
    assert "key=" not in str(request.url)
    assert json.loads(request.content)["generationConfig"] == {"temperature": 0}


def test_with_methods_leave_original_untouched(settings) -> None:
    client = _client(settings, lambda request: _text_response("x"))
    policy = ReconnectPolicy(max_attempts=1)

    derived = (
        client.with_model("gemini-1.5-pro")
        .with_embedding_model("embedding-001")
        .with_reconnect_policy(policy)
        .with_headers({"X-Team": "search"})
    )

    assert client.model_name == "gemini-2.0-flash"
    assert client.embedding_model_name == "text-embedding-004"
    assert client.reconnect_policy.max_attempts == 10
    assert "X-Team" not in client.headers
    assert derived.model_name == "gemini-1.5-pro"
    assert derived.embedding_model_name == "embedding-001"
    assert derived.reconnect_policy is policy
    assert derived.headers["X-Team"] == "search"


def test_api_error_envelope_is_raised(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": 400, "message": "Bad prompt", "status": "INVALID_ARGUMENT"}})

    client = _client(settings, handler)

    with pytest.raises(ApiError, match="API Error: Bad prompt"):
        asyncio.run(client.generate_content("Hi"))


def test_non_json_response_is_invalid_format(settings) -> None:
    client = _client(settings, lambda request: httpx.Response(200, text="oops"))

    with pytest.raises(InvalidResponseFormat):
        asyncio.run(client.generate_content("Hi"))


def test_plain_requests_retry_with_backoff(settings, recording_sleep) -> None:
    retry_settings = settings.model_copy(
        update={"gemini": settings.gemini.model_copy(update={"retry_delay": 0.5, "max_retries": 2})}
    )
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("Connection refused", request=request)
        if calls == 2:
            return httpx.Response(503, json={"error": {"message": "overloaded"}})
        return _text_response("finally")

    client = _client(retry_settings, handler, sleep=recording_sleep)

    response = asyncio.run(client.generate_content("Hi"))

    assert response.text() == "finally"
    assert recording_sleep.delays == [0.5, 1.0]


def test_plain_requests_give_up_after_retries(settings, recording_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    client = _client(settings, handler, sleep=recording_sleep)

    with pytest.raises(GeminiTransportError) as exc_info:
        asyncio.run(client.generate_content("Hi"))

    assert isinstance(exc_info.value.cause, httpx.ConnectError)
    assert len(recording_sleep.delays) == settings.gemini.max_retries


def test_search_ranks_documents_by_similarity(settings) -> None:
    payloads: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        payloads.append(body)
        text = body["content"]["parts"][0]["text"]
        values = QUERY if body["task_type"] == "RETRIEVAL_QUERY" else DOCUMENT_VECTORS[text]
        return httpx.Response(200, json={"embedding": {"values": values}})

    client = _client(settings, handler)

    results = asyncio.run(client.search("What do cats do?", list(DOCUMENT_VECTORS)))

    assert [(result.text, result.index) for result in results] == [
        ("Kittens are young cats", 1),
        ("Cats purr when content", 0),
    ]
    assert results[0].similarity == pytest.approx(0.9)
    assert results[1].similarity == pytest.approx(0.3)
    assert sorted(payload["task_type"] for payload in payloads) == [
        "RETRIEVAL_DOCUMENT",
        "RETRIEVAL_DOCUMENT",
        "RETRIEVAL_QUERY",
    ]


def test_search_without_documents_makes_no_requests(settings) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"embedding": {"values": [1.0]}})

    client = _client(settings, handler)

    assert asyncio.run(client.search("anything", [])) == []
    assert requests == []


def test_batch_embed_posts_all_requests(settings) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"embeddings": [{"values": [1, 2]}, {"values": [3, 4]}]})

    client = _client(settings, handler)

    response = asyncio.run(client.batch_embed([{"content": "a"}, {"content": "b"}]))

    assert response.values() == [[1.0, 2.0], [3.0, 4.0]]
    assert requests[0].url.path.endswith("/models/text-embedding-004:batchEmbedContents")
    assert [item["model"] for item in json.loads(requests[0].content)["requests"]] == [
        "models/text-embedding-004",
        "models/text-embedding-004",
    ]


def test_list_and_get_models(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json={"models": [{"name": "models/gemini-2.0-flash"}]})
        return httpx.Response(200, json={"name": "models/gemini-2.0-flash", "inputTokenLimit": 1048576})

    client = _client(settings, handler)

    models = asyncio.run(client.list_models())
    model = asyncio.run(client.get_model("gemini-2.0-flash"))

    assert models["models"][0]["name"] == "models/gemini-2.0-flash"
    assert model["inputTokenLimit"] == 1048576


def test_cached_responses_skip_the_network(settings, tmp_path) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return _text_response("cached answer")

    cache = ResponseCache(FileCacheBackend(tmp_path / "responses"), ttl=60)
    client = _client(settings, handler, cache=cache)

    async def _run() -> tuple[str, str]:
        first = await client.generate_content("Same prompt")
        second = await client.generate_content("Same prompt")
        return first.text(), second.text()

    assert asyncio.run(_run()) == ("cached answer", "cached answer")
    assert calls == 1


def test_stream_generate_content_reconnects_and_collects_text(settings, sse, recording_sleep) -> None:
    calls = 0
    reconnects: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        assert request.url.params["alt"] == "sse"
        if calls == 1:
            return httpx.Response(
                200,
                content=sse.body(
                    [sse.block(sse.candidate_payload("Hello"), event_id="e1")],
                    httpx.RemoteProtocolError("peer closed connection without sending complete message body"),
                ),
            )
        assert request.headers["Last-Event-ID"] == "e1"
        return httpx.Response(200, content=sse.body([sse.block(sse.candidate_payload(" world"), event_id="e2")]))

    policy = ReconnectPolicy(jitter=False, on_reconnect=lambda attempt, delay: reconnects.append(attempt))
    client = _client(settings, handler, sleep=recording_sleep).with_reconnect_policy(policy)
    fragments: list[str] = []

    async def _run():
        call = client.stream_generate_content("Say hello", lambda fragment, event: fragments.append(fragment))
        session = await call
        return call, session

    call, session = asyncio.run(_run())

    assert session.text() == "Hello world"
    assert fragments == ["Hello", " world"]
    assert reconnects == [1]
    assert call.state is StreamState.COMPLETED


def test_stream_sse_without_done_event(settings, sse, recording_sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=sse.body([sse.block(sse.candidate_payload("a", "b", "c"))]))

    client = _client(settings, handler)

    async def _run():
        return await client.stream_sse("x", recording_sink, {"done_event": None})

    session = asyncio.run(_run())

    assert [name for name, _ in recording_sink.events()] == ["message", "message", "message"]
    assert session.chunk_count() == 3
    assert recording_sink.closed


def test_stream_sse_counters_agree_with_session(settings, sse, recording_sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        blocks = [sse.block(sse.candidate_payload("Grüße", " aus")), sse.block(sse.candidate_payload(" Köln"))]
        return httpx.Response(200, content=sse.body(blocks))

    client = _client(settings, handler)

    async def _run():
        return await client.stream_sse("x", recording_sink)

    session = asyncio.run(_run())

    name, done = recording_sink.events()[-1]
    stats = session.stats()
    assert name == "done"
    assert done["metadata"]["chunks"] == stats.chunk_count == 3
    assert done["metadata"]["length"] == stats.total_length == len("Grüße aus Köln")
    last_message = recording_sink.events()[-2][1]
    assert last_message["metadata"]["totalLength"] == stats.total_length


def test_stream_sse_failure_emits_error_and_raises(settings, sse, recording_sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"code": 500, "message": "Internal", "status": "INTERNAL"}})

    client = _client(settings, handler)

    async def _run():
        return await client.stream_sse("x", recording_sink)

    with pytest.raises(StreamTerminalFailure):
        asyncio.run(_run())

    assert [name for name, _ in recording_sink.events()] == ["error"]
    assert recording_sink.closed


def test_cancelled_stream_sse_emits_nothing_further(settings, sse, recording_sink) -> None:
    async def _run():
        never = asyncio.Event()
        first = asyncio.Event()

        async def body():
            yield sse.block(sse.candidate_payload("partial")).encode("utf-8")
            await never.wait()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body())

        client = _client(settings, handler)
        call = client.stream_sse("x", recording_sink, on_chunk=lambda fragment, event: first.set())
        await first.wait()
        call.cancel()
        return call, await call

    call, session = asyncio.run(_run())

    assert session.text() == "partial"
    assert call.state is StreamState.CANCELLED
    assert [name for name, _ in recording_sink.events()] == ["message"]
    assert recording_sink.closed


def test_search_fails_when_one_document_embedding_fails(settings, recording_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        text = body["content"]["parts"][0]["text"]
        if text == "broken document":
            return httpx.Response(500, json={"error": {"code": 500, "message": "Internal error", "status": "INTERNAL"}})
        return httpx.Response(200, json={"embedding": {"values": [1.0, 0.0]}})

    client = _client(settings, handler, sleep=recording_sleep)

    with pytest.raises(ApiError, match="Internal error") as exc_info:
        asyncio.run(client.search("query", ["fine document", "broken document", "another fine one"]))

    assert exc_info.value.status_code == 500
