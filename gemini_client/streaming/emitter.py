"""Re-emit streamed fragments as a caller-facing ``text/event-stream`` protocol."""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator, Callable, Mapping
from time import perf_counter
from typing import Any, Protocol, TextIO

from pydantic import BaseModel, ConfigDict, Field

from .consumer import ReconnectingStreamConsumer, StreamState
from .events import SSEEvent
from .session import StreamingStats, StreamSession

LOGGER = logging.getLogger(__name__)

BeforeEmitHook = Callable[[str, dict[str, Any]], dict[str, Any]]


class EmissionConfig(BaseModel):
    """Which events to publish and how to decorate them.

    Setting an event name to ``None`` disables that event.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    message_event: str | None = "message"
    done_event: str | None = "done"
    error_event: str | None = "error"
    progress_event: str | None = None
    include_metadata: bool = True
    custom_metadata: dict[str, Any] = Field(default_factory=dict)
    on_before_emit: BeforeEmitHook | None = None

    def with_overrides(self, **changes: Any) -> "EmissionConfig":
        values = dict(self)
        values.update(changes)
        return type(self)(**values)


class EventSink(Protocol):
    """Destination for formatted event blocks."""

    def write(self, block: str) -> None:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...


class TextStreamSink:
    """Write blocks to a text stream such as ``sys.stdout``."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def write(self, block: str) -> None:
        self._stream.write(block)

    def flush(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        self._stream.flush()


class QueueSink:
    """Buffer blocks for an async reader, e.g. an HTTP response body."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, block: str) -> None:
        if self._closed:
            raise RuntimeError("Cannot write to a closed sink")
        self._queue.put_nowait(block)

    def flush(self) -> None:
        return None

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            block = await self._queue.get()
            if block is None:
                return
            yield block


def format_event(name: str, data: Mapping[str, Any]) -> str:
    """Render one ``event:``/``data:`` block terminated by a blank line."""

    return f"event: {name}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


class SSEEmitter:
    """Publish message, progress, done and error events for a stream.

    Counters are kept locally and agree with the session the consumer
    fills: one count per fragment and lengths in characters.
    """

    def __init__(
        self,
        config: EmissionConfig | None = None,
        sink: EventSink | None = None,
        *,
        clock: Callable[[], float] = perf_counter,
    ) -> None:
        self._config = config or EmissionConfig()
        self._sink: EventSink = sink if sink is not None else TextStreamSink()
        self._clock = clock
        self._chunk_count = 0
        self._total_length = 0
        self._start_time = clock()

    @property
    def config(self) -> EmissionConfig:
        return self._config

    def handle_chunk(self, fragment: str, event: SSEEvent | None = None) -> None:
        self._chunk_count += 1
        self._total_length += len(fragment)
        if self._config.message_event is not None:
            data: dict[str, Any] = {"content": fragment}
            if self._config.include_metadata:
                data["metadata"] = {
                    "chunk": self._chunk_count,
                    "length": len(fragment),
                    "totalLength": self._total_length,
                    **self._config.custom_metadata,
                }
            self._emit(self._config.message_event, data)
        if self._config.progress_event is not None:
            self._emit(
                self._config.progress_event,
                {"chunk": self._chunk_count, "totalChunks": self._chunk_count, "length": self._total_length},
            )

    def handle_completion(self) -> None:
        if self._config.done_event is None:
            return
        data: dict[str, Any] = {"status": "complete"}
        if self._config.include_metadata:
            data["metadata"] = {
                "chunks": self._chunk_count,
                "length": self._total_length,
                "duration": round(self._clock() - self._start_time, 3),
                **self._config.custom_metadata,
            }
        self._emit(self._config.done_event, data)

    def handle_error(self, error: BaseException) -> None:
        if self._config.error_event is None:
            return
        self._emit(self._config.error_event, {"error": "Stream failed", "message": str(error)})

    def stats(self) -> StreamingStats:
        return StreamingStats(
            chunk_count=self._chunk_count,
            total_length=self._total_length,
            elapsed=self._clock() - self._start_time,
        )

    def reset(self) -> None:
        self._chunk_count = 0
        self._total_length = 0
        self._start_time = self._clock()

    def _emit(self, name: str, data: dict[str, Any]) -> None:
        hook = self._config.on_before_emit
        if hook is not None:
            data = hook(name, data)
        self._sink.write(format_event(name, data))
        self._sink.flush()


async def run_with_emission(consumer: ReconnectingStreamConsumer, emitter: SSEEmitter) -> StreamSession:
    """Run ``consumer`` and publish its outcome; failures are re-raised after the error event."""

    try:
        session = await consumer.run()
    except Exception as exc:
        LOGGER.debug("Re-emitting stream failure | error=%s", exc)
        try:
            emitter.handle_error(exc)
        except Exception:  # noqa: BLE001
            LOGGER.warning("Error event emission failed | error=%s", exc, exc_info=True)
        raise
    if consumer.state is StreamState.COMPLETED:
        emitter.handle_completion()
    return session


__all__ = [
    "EmissionConfig",
    "EventSink",
    "TextStreamSink",
    "QueueSink",
    "SSEEmitter",
    "BeforeEmitHook",
    "format_event",
    "run_with_emission",
]
