"""httpx backed transport for Gemini REST calls."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any

import httpx

from ..config import GeminiSettings
from ..exceptions import ApiError, GeminiTransportError

LOGGER = logging.getLogger(__name__)

API_KEY_HEADER = "x-goog-api-key"
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class GeminiTransport:
    """Issue authenticated JSON and SSE requests against the Gemini API.

    Plain requests are retried with exponential backoff on transport errors
    and retryable status codes. Streaming requests are attempted once; the
    stream consumer owns reconnection.
    """

    def __init__(
        self,
        api_key: str,
        settings: GeminiSettings,
        *,
        headers: Mapping[str, str] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._settings = settings
        self._headers = {**settings.default_headers, **(headers or {})}
        self._http_transport = http_transport
        self._sleep = sleep

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def with_headers(self, headers: Mapping[str, str]) -> "GeminiTransport":
        return GeminiTransport(
            self._api_key,
            self._settings,
            headers={**self._headers, **headers},
            http_transport=self._http_transport,
            sleep=self._sleep,
        )

    def _request_headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self._headers, API_KEY_HEADER: self._api_key}
        if extra:
            headers.update(extra)
        return headers

    def _client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._http_transport)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> httpx.Response:
        return await self._send("POST", url, payload)

    async def get_json(self, url: str) -> httpx.Response:
        return await self._send("GET", url, None)

    async def _send(self, method: str, url: str, payload: Mapping[str, Any] | None) -> httpx.Response:
        timeout = httpx.Timeout(self._settings.request_timeout)
        retries = self._settings.max_retries
        delay = self._settings.retry_delay
        last_error: Exception | None = None
        start_time = perf_counter()
        async with self._client(timeout) as client:
            for attempt in range(retries + 1):
                try:
                    response = await client.request(method, url, json=payload, headers=self._request_headers())
                except httpx.TransportError as exc:
                    last_error = exc
                    LOGGER.warning(
                        "Gemini request failed | method=%s url=%s attempt=%d error=%s",
                        method,
                        url,
                        attempt + 1,
                        exc,
                    )
                else:
                    if response.status_code not in _RETRYABLE_STATUS or attempt == retries:
                        LOGGER.info(
                            "Gemini request finished | method=%s status=%d attempts=%d duration=%.2fs",
                            method,
                            response.status_code,
                            attempt + 1,
                            perf_counter() - start_time,
                        )
                        return response
                    LOGGER.warning(
                        "Gemini request got retryable status | method=%s url=%s status=%d attempt=%d",
                        method,
                        url,
                        response.status_code,
                        attempt + 1,
                    )
                if attempt < retries:
                    await self._sleep(delay)
                    delay *= self._settings.retry_multiplier
        raise GeminiTransportError(
            f"Failed to reach Gemini API at {url} after {retries + 1} attempts: {last_error}",
            cause=last_error,
        )

    @asynccontextmanager
    async def open_stream(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        last_event_id: str | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open one SSE connection; error statuses raise :class:`ApiError`."""

        extra = {"Accept": "text/event-stream"}
        if last_event_id is not None:
            extra["Last-Event-ID"] = last_event_id
        timeout = httpx.Timeout(self._settings.stream_timeout)
        async with self._client(timeout) as client:
            async with client.stream("POST", url, json=payload, headers=self._request_headers(extra)) as response:
                if response.is_error:
                    await response.aread()
                    raise _stream_status_error(response)
                yield response


def _stream_status_error(response: httpx.Response) -> ApiError:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and "error" in data:
        return ApiError.from_envelope(data, status_code=response.status_code)
    return ApiError(
        f"API Error: streaming request failed with status {response.status_code}: {response.text[:200]}",
        status_code=response.status_code,
    )


__all__ = ["GeminiTransport", "API_KEY_HEADER"]
