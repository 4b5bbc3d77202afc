"""Relay a re-emitted stream as a FastAPI ``text/event-stream`` response."""
from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Mapping

from fastapi.responses import StreamingResponse

from .call import StreamingCall
from .emitter import QueueSink

LOGGER = logging.getLogger(__name__)

EVENT_STREAM_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def event_stream_response(
    call: StreamingCall,
    sink: QueueSink,
    *,
    headers: Mapping[str, str] | None = None,
) -> StreamingResponse:
    """Build a streaming response body from the blocks written to ``sink``.

    The stream is cancelled when the client goes away before it finished.
    """

    async def _body() -> AsyncGenerator[str, None]:
        try:
            async for block in sink:
                yield block
        finally:
            if not call.done():
                LOGGER.info("Event stream client disconnected | chunks=%d", call.session.chunk_count())
                call.cancel()
        try:
            await call
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Event stream relay ended with an error | error=%s", exc)

    return StreamingResponse(
        _body(),
        media_type="text/event-stream",
        headers={**EVENT_STREAM_HEADERS, **(headers or {})},
    )


__all__ = ["event_stream_response", "EVENT_STREAM_HEADERS"]
