from contextlib import nullcontext
from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import BASE_TIME, RecordingConnection
from lifewrap.db.chunk_repository import AudioChunkRepository
from lifewrap.db.repositories import RecordNotFoundError
from lifewrap.db.session_repository import SessionMetadataRepository
from lifewrap.db.summary_repository import SummaryRepository
from lifewrap.db.transcript_repository import TranscriptSegmentRepository
from lifewrap.models import PeriodType


@pytest.fixture
def connection():
    return RecordingConnection()


@pytest.fixture
def factory(connection):
    return lambda: nullcontext(connection)


def _summary_row(**overrides):
    row = {
        "id": uuid4(),
        "period_type": "week",
        "period_start": BASE_TIME,
        "period_end": BASE_TIME + timedelta(days=7),
        "text": "• quiet week",
        "created_at": BASE_TIME,
        "updated_at": None,
        "session_id": None,
        "topics_json": None,
        "entities_json": None,
        "engine_tier": "rollup",
        "source_ids": "[]",
        "input_hash": "abc",
    }
    row.update(overrides)
    return row


def test_upsert_period_targets_the_aggregate_unique_index(connection, factory):
    connection.rows = [_summary_row()]
    repository = SummaryRepository(factory)

    summary = repository.upsert_period(
        period_type=PeriodType.WEEK,
        text="• quiet week",
        start=BASE_TIME,
        end=BASE_TIME + timedelta(days=7),
        engine_tier="rollup",
        input_hash="abc",
    )

    assert "ON CONFLICT (period_type, period_start) WHERE session_id IS NULL" in connection.last_query
    assert "updated_at = NOW()" in connection.last_query
    assert connection.last_params["period_type"] == "week"
    assert summary.period_type is PeriodType.WEEK
    assert summary.input_hash == "abc"


def test_list_in_range_separates_session_rows_from_aggregates(connection, factory):
    repository = SummaryRepository(factory)

    repository.list_in_range(PeriodType.SESSION, BASE_TIME, BASE_TIME + timedelta(days=1))
    assert "session_id IS NOT NULL" in connection.last_query
    assert connection.last_query.endswith("ORDER BY period_start ASC")

    repository.list_in_range(PeriodType.DAY, BASE_TIME, BASE_TIME + timedelta(days=7))
    assert "session_id IS NULL" in connection.last_query
    assert connection.last_params["period_type"] == "day"


def test_find_for_session_returns_none_when_absent(factory):
    assert SummaryRepository(factory).find_for_session(uuid4()) is None


def test_get_by_id_raises_when_absent(factory):
    with pytest.raises(RecordNotFoundError):
        SummaryRepository(factory).get_by_id(uuid4())


@pytest.mark.parametrize(
    ("total", "transcribed", "expected"),
    [(2, 2, True), (2, 1, False), (0, 0, False)],
)
def test_session_completion_needs_segments_for_every_chunk(connection, factory, total, transcribed, expected):
    connection.rows = [{"total_chunks": total, "transcribed_chunks": transcribed}]

    assert AudioChunkRepository(factory).is_session_complete(uuid4()) is expected
    assert "LEFT JOIN transcript_segments" in connection.last_query


def test_sessions_in_range_group_chunks(connection, factory):
    session_id = uuid4()
    connection.rows = [
        {"session_id": session_id, "started_at": BASE_TIME, "created_at": BASE_TIME, "chunk_count": 3}
    ]

    sessions = AudioChunkRepository(factory).list_sessions_in_range(BASE_TIME, BASE_TIME + timedelta(days=1))

    assert sessions[0].session_id == session_id
    assert sessions[0].chunk_count == 3
    assert "GROUP BY session_id" in connection.last_query


def test_metadata_batch_lookup(connection, factory):
    repository = SessionMetadataRepository(factory)
    assert repository.find_many([]) == {}
    assert connection.executed == []

    session_id = uuid4()
    connection.rows = [
        {"session_id": session_id, "title": None, "notes": "tired", "is_favorite": False, "category": "work"}
    ]
    found = repository.find_many([session_id])

    assert "ANY(%(ids)s::uuid[])" in connection.last_query
    assert connection.last_params == {"ids": [str(session_id)]}
    assert found[session_id].notes == "tired"


def test_segment_edit_recomputes_word_count(connection, factory):
    segment_id = uuid4()
    connection.rows = [
        {
            "id": segment_id,
            "audio_chunk_id": uuid4(),
            "start_time": 0.0,
            "end_time": 1.5,
            "text": "three new words",
            "confidence": 0.9,
            "language_code": "en",
            "sentiment_score": None,
            "word_count": 3,
            "created_at": BASE_TIME,
        }
    ]

    segment = TranscriptSegmentRepository(factory).update_text(segment_id, "three new words")

    assert connection.last_params == {"id": str(segment_id), "text": "three new words", "word_count": 3}
    assert segment.word_count == 3
