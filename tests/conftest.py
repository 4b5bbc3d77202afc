from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from gemini_client.config import CacheSettings, GeminiSettings, ReconnectSettings, Settings

API_KEY = "test-key"


class RecordingSleep:
    """Async stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingSink:
    """Event sink collecting formatted blocks in memory."""

    def __init__(self) -> None:
        self.blocks: list[str] = []
        self.flushes = 0
        self.closed = False

    def write(self, block: str) -> None:
        self.blocks.append(block)

    def flush(self) -> None:
        self.flushes += 1

    def close(self) -> None:
        self.closed = True

    def events(self) -> list[tuple[str, dict]]:
        parsed: list[tuple[str, dict]] = []
        for block in self.blocks:
            event_line, data_line, *_ = block.split("\n")
            parsed.append((event_line[len("event: ") :], json.loads(data_line[len("data: ") :])))
        return parsed


class SSEFactory:
    """Build Gemini shaped SSE payloads and response bodies."""

    @staticmethod
    def candidate_payload(*texts: str) -> str:
        return json.dumps({"candidates": [{"content": {"parts": [{"text": text} for text in texts]}}]})

    @staticmethod
    def block(data: str, *, event_id: str | None = None) -> str:
        lines = []
        if event_id is not None:
            lines.append(f"id: {event_id}")
        lines.append(f"data: {data}")
        return "\n".join(lines) + "\n\n"

    @staticmethod
    async def body(blocks: Iterable[str], error: Exception | None = None) -> AsyncIterator[bytes]:
        for block in blocks:
            yield block.encode("utf-8")
        if error is not None:
            raise error


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        gemini=GeminiSettings(api_key=API_KEY, retry_delay=0.0),
        reconnect=ReconnectSettings(jitter=False),
        cache=CacheSettings(enabled=False, path=tmp_path / "cache"),
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def sse() -> SSEFactory:
    return SSEFactory()
