"""Server-Sent Events records and an incremental line decoder."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """One dispatched ``text/event-stream`` event."""

    event: str = "message"
    data: str | None = None
    id: str | None = None
    retry: int | None = None
    is_keep_alive: bool = False

    def as_dict(self) -> dict[str, object]:
        return {"event": self.event, "data": self.data, "id": self.id, "retry": self.retry}

    @classmethod
    def keep_alive(cls) -> "SSEEvent":
        return cls(event="keep-alive", is_keep_alive=True)


class SSEDecoder:
    """Turn decoded lines into :class:`SSEEvent` records.

    Feed every line (without its terminator) to :meth:`decode`; a blank
    line dispatches the pending event. Lines starting with ``:`` are
    comments, and a block made only of comments is reported as a
    keep-alive event so callers can tell the connection is alive.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None
        self._retry: int | None = None
        self._comment_only = False

    def decode(self, line: str) -> SSEEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            if self._event is None and not self._data and self._id is None:
                self._comment_only = True
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._id = value
        elif field == "retry":
            if value.isascii() and value.isdigit():
                self._retry = int(value)
        else:
            return None
        self._comment_only = False
        return None

    def flush(self) -> SSEEvent | None:
        """Dispatch a trailing block left open when the stream ended."""

        if not self._data:
            self._reset()
            return None
        return self._dispatch()

    def _dispatch(self) -> SSEEvent | None:
        if self._comment_only:
            self._reset()
            return SSEEvent.keep_alive()
        if self._event is None and not self._data and self._id is None and self._retry is None:
            self._reset()
            return None
        event = SSEEvent(
            event=self._event or "message",
            data="\n".join(self._data) if self._data else None,
            id=self._id,
            retry=self._retry,
        )
        self._reset()
        return event


__all__ = ["SSEEvent", "SSEDecoder"]
