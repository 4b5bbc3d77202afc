"""Streaming generation: SSE decoding, reconnects and event re-emission."""

from .call import StreamingCall
from .consumer import ReconnectingStreamConsumer, StreamState
from .emitter import EmissionConfig, EventSink, QueueSink, SSEEmitter, TextStreamSink
from .events import SSEDecoder, SSEEvent
from .exceptions import StreamError, StreamSessionClosed, StreamTerminalFailure, StreamTransientFailure
from .parser import parse_sse_data
from .reconnect import ReconnectPolicy
from .session import StreamingStats, StreamSession

__all__ = [
    "StreamingCall",
    "ReconnectingStreamConsumer",
    "StreamState",
    "EmissionConfig",
    "EventSink",
    "QueueSink",
    "SSEEmitter",
    "TextStreamSink",
    "SSEDecoder",
    "SSEEvent",
    "StreamError",
    "StreamSessionClosed",
    "StreamTerminalFailure",
    "StreamTransientFailure",
    "parse_sse_data",
    "ReconnectPolicy",
    "StreamingStats",
    "StreamSession",
]
