"""Reconnecting consumer for ``streamGenerateContent`` SSE responses."""
from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Any, Protocol

import httpx

from ..exceptions import ApiError
from .events import SSEDecoder, SSEEvent
from .exceptions import StreamTerminalFailure, StreamTransientFailure
from .parser import parse_sse_data
from .reconnect import ReconnectPolicy, describe_error
from .session import StreamSession

LOGGER = logging.getLogger(__name__)

ChunkCallback = Callable[[str, SSEEvent], Any]


class StreamState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.COMPLETED, StreamState.FAILED, StreamState.CANCELLED)


class StreamOpener(Protocol):
    def open_stream(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        last_event_id: str | None = None,
    ) -> AbstractAsyncContextManager[httpx.Response]:
        ...


class ReconnectingStreamConsumer:
    """Drive one logical streaming request across reconnects.

    Fragments are appended to the session and handed to ``on_chunk`` in
    arrival order from within the event loop turn that decoded them. When a
    connection drops with an error the policy classifies as retryable, the
    consumer waits for the backoff delay and reconnects with the last seen
    event id so the server can resume. A consumer runs once.
    """

    def __init__(
        self,
        transport: StreamOpener,
        url: str,
        payload: Mapping[str, Any],
        *,
        policy: ReconnectPolicy | None = None,
        on_chunk: ChunkCallback | None = None,
        session: StreamSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._transport = transport
        self._url = url
        self._payload = payload
        self._policy = policy or ReconnectPolicy()
        self._on_chunk = on_chunk
        self._session = session or StreamSession()
        self._sleep = sleep
        self._rng = rng
        self._state = StreamState.CONNECTING
        self._attempts = 0
        self._last_event_id: str | None = None
        self._cancelled = False
        self._started = False
        self._task: asyncio.Task[Any] | None = None

    @property
    def session(self) -> StreamSession:
        return self._session

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def attempts(self) -> int:
        """Number of reconnects performed so far."""

        return self._attempts

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    def cancel(self) -> None:
        """Stop the stream; accumulated data is kept and no callbacks fire afterwards."""

        if self._state.is_terminal:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        elif not self._started:
            self._state = StreamState.CANCELLED
            self._session.finish()

    async def run(self) -> StreamSession:
        if self._started:
            raise RuntimeError("A stream consumer can only run once")
        self._started = True
        if self._cancelled:
            return self._session
        self._task = asyncio.current_task()
        LOGGER.info("Gemini stream started | url=%s max_reconnects=%d", self._url, self._policy.max_attempts)
        try:
            await self._run_attempts()
        except asyncio.CancelledError:
            self._state = StreamState.CANCELLED
            raise
        except Exception:
            self._state = StreamState.FAILED
            raise
        else:
            self._state = StreamState.COMPLETED
            return self._session
        finally:
            self._session.finish()
            stats = self._session.stats()
            LOGGER.info(
                "Gemini stream finished | state=%s duration=%.2fs chunks=%d characters=%d reconnects=%d",
                self._state.value,
                stats.elapsed,
                stats.chunk_count,
                stats.total_length,
                self._attempts,
            )

    async def _run_attempts(self) -> None:
        while True:
            try:
                await self._consume_once()
                return
            except (httpx.HTTPError, ApiError) as exc:
                if not self._policy.should_reconnect(exc, self._attempts):
                    raise StreamTerminalFailure(
                        f"Stream failed after {self._attempts} reconnect attempt(s): {describe_error(exc)}",
                        cause=exc,
                        attempts=self._attempts,
                    ) from exc
                failure = StreamTransientFailure(describe_error(exc), cause=exc, attempts=self._attempts)
            await self._wait_before_reconnect(failure)

    async def _consume_once(self) -> None:
        async with self._transport.open_stream(
            self._url, self._payload, last_event_id=self._last_event_id
        ) as response:
            decoder = SSEDecoder()
            async for line in response.aiter_lines():
                if self._state is not StreamState.STREAMING:
                    self._state = StreamState.STREAMING
                event = decoder.decode(line.rstrip("\r\n"))
                if event is not None:
                    self._handle_event(event)
            trailing = decoder.flush()
            if trailing is not None:
                self._handle_event(trailing)

    def _handle_event(self, event: SSEEvent) -> None:
        if self._cancelled:
            return
        if event.id is not None:
            self._last_event_id = event.id
        if event.is_keep_alive or event.data is None:
            return
        for fragment in parse_sse_data(event.data):
            if self._cancelled:
                return
            self._session.add_chunk(fragment)
            self._session.add_event(event)
            if self._on_chunk is not None:
                self._on_chunk(fragment, event)

    async def _wait_before_reconnect(self, failure: StreamTransientFailure) -> None:
        self._state = StreamState.RECONNECTING
        delay = self._policy.compute_delay(self._attempts, self._rng)
        self._attempts += 1
        LOGGER.info(
            "Gemini stream reconnecting | attempt=%d delay=%.2fs last_event_id=%s error=%s",
            self._attempts,
            delay,
            self._last_event_id,
            failure,
        )
        self._notify_observer(self._attempts, delay)
        await self._sleep(delay)
        self._state = StreamState.CONNECTING

    def _notify_observer(self, attempt: int, delay: float) -> None:
        observer = self._policy.on_reconnect
        if observer is None:
            return
        try:
            observer(attempt, delay)
        except Exception:  # noqa: BLE001
            LOGGER.warning("Reconnect observer failed | attempt=%d", attempt, exc_info=True)


__all__ = ["ReconnectingStreamConsumer", "StreamState", "StreamOpener", "ChunkCallback"]
