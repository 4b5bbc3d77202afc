"""Accumulated state of one streaming generation request."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter

from .events import SSEEvent
from .exceptions import StreamSessionClosed


@dataclass(frozen=True, slots=True)
class StreamingStats:
    """Read-only snapshot derived from a :class:`StreamSession`."""

    chunk_count: int
    total_length: int
    elapsed: float

    def as_dict(self) -> dict[str, float | int]:
        return {"chunks": self.chunk_count, "totalLength": self.total_length, "duration": self.elapsed}


class StreamSession:
    """Append-only log of the fragments and events received for a stream.

    The consumer driving the stream is the only writer. Readers may inspect
    the session at any time, including mid-stream, and always see a prefix
    of the final state. Once :meth:`finish` is called the session no longer
    accepts writes.
    """

    def __init__(self, *, clock: Callable[[], float] = perf_counter) -> None:
        self._clock = clock
        self._chunks: list[str] = []
        self._events: list[SSEEvent] = []
        self._length = 0
        self._started_at = clock()
        self._finished_at: float | None = None

    def add_chunk(self, text: str) -> None:
        self._ensure_open()
        self._chunks.append(text)
        self._length += len(text)

    def add_event(self, event: SSEEvent) -> None:
        self._ensure_open()
        self._events.append(event)

    def finish(self) -> None:
        if self._finished_at is None:
            self._finished_at = self._clock()

    @property
    def is_finished(self) -> bool:
        return self._finished_at is not None

    def text(self) -> str:
        return "".join(self._chunks)

    def chunks(self) -> list[str]:
        return list(self._chunks)

    def chunk_count(self) -> int:
        return len(self._chunks)

    def events(self) -> list[SSEEvent]:
        return list(self._events)

    def last_event_id(self) -> str | None:
        for event in reversed(self._events):
            if event.id is not None:
                return event.id
        return None

    def stats(self) -> StreamingStats:
        end = self._finished_at if self._finished_at is not None else self._clock()
        return StreamingStats(
            chunk_count=len(self._chunks),
            total_length=self._length,
            elapsed=end - self._started_at,
        )

    def _ensure_open(self) -> None:
        if self._finished_at is not None:
            raise StreamSessionClosed("Stream session is finished and no longer accepts data")

    def __repr__(self) -> str:
        return f"StreamSession(chunks={len(self._chunks)}, length={self._length}, finished={self.is_finished})"


__all__ = ["StreamSession", "StreamingStats"]
