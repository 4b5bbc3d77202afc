"""Cancellable handle for a running streaming request."""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Generator
from typing import Any

from .consumer import ReconnectingStreamConsumer, StreamState
from .session import StreamSession


class StreamingCall:
    """Awaitable wrapper around the task driving a stream.

    ``session`` is readable at any time and keeps whatever was received if
    the stream fails or is cancelled. Awaiting a call cancelled through
    :meth:`cancel` returns that partial session instead of raising.
    """

    def __init__(
        self,
        consumer: ReconnectingStreamConsumer,
        runner: Coroutine[Any, Any, StreamSession] | None = None,
    ) -> None:
        self._consumer = consumer
        self._cancel_requested = False
        loop = asyncio.get_running_loop()
        self._task: asyncio.Task[StreamSession] = loop.create_task(runner or consumer.run())

    @property
    def session(self) -> StreamSession:
        return self._consumer.session

    @property
    def state(self) -> StreamState:
        return self._consumer.state

    def cancel(self) -> None:
        if self._task.done():
            return
        self._cancel_requested = True
        self._consumer.cancel()
        self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def add_done_callback(self, callback: Callable[["StreamingCall"], Any]) -> None:
        self._task.add_done_callback(lambda _task: callback(self))

    async def result(self) -> StreamSession:
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._cancel_requested and self._task.done():
                self._consumer.session.finish()
                return self._consumer.session
            raise

    def __await__(self) -> Generator[Any, None, StreamSession]:
        return self.result().__await__()


__all__ = ["StreamingCall"]
