from __future__ import annotations

import pytest

from gemini_client.streaming.events import SSEEvent
from gemini_client.streaming.exceptions import StreamSessionClosed
from gemini_client.streaming.session import StreamSession


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.parametrize(
    "fragments",
    [
        [],
        ["Hello"],
        ["Hello", " ", "world", ""],
        ["ü", "ñ", "🙂", "\n"],
    ],
)
def test_text_matches_concatenated_chunks_after_every_append(fragments: list[str]) -> None:
    session = StreamSession()

    for fragment in fragments:
        session.add_chunk(fragment)
        assert session.text() == "".join(session.chunks())

    assert session.chunk_count() == len(fragments)
    assert session.chunks() == fragments


def test_readers_return_snapshots() -> None:
    session = StreamSession()
    session.add_chunk("a")

    chunks = session.chunks()
    chunks.append("mutated")

    assert session.chunks() == ["a"]


def test_last_event_id_tracks_latest_event_carrying_an_id() -> None:
    session = StreamSession()
    assert session.last_event_id() is None

    session.add_event(SSEEvent(data="{}", id="1"))
    session.add_event(SSEEvent(data="{}"))

    assert session.last_event_id() == "1"
    assert len(session.events()) == 2


def test_stats_are_derived_and_freeze_on_finish() -> None:
    clock = FakeClock()
    session = StreamSession(clock=clock)
    session.add_chunk("abc")
    session.add_chunk("de")
    clock.now = 102.5

    stats = session.stats()
    assert (stats.chunk_count, stats.total_length, stats.elapsed) == (2, 5, 2.5)

    session.finish()
    clock.now = 110.0

    assert session.stats().elapsed == 2.5
    assert session.is_finished


def test_finished_session_rejects_writes_but_keeps_data() -> None:
    session = StreamSession()
    session.add_chunk("partial")
    session.finish()

    with pytest.raises(StreamSessionClosed):
        session.add_chunk("more")
    with pytest.raises(StreamSessionClosed):
        session.add_event(SSEEvent(data="{}"))

    assert session.text() == "partial"
