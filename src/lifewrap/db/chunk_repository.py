"""Repository for interacting with the `audio_chunks` table."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from lifewrap.db import ConnectionFactory
from lifewrap.db.repositories import BaseRepository, RecordNotFoundError
from lifewrap.models.recording import AudioChunk, RecordingSession

_SESSIONS_IN_RANGE_QUERY = """
    SELECT session_id,
           MIN(start_time) AS started_at,
           MIN(created_at) AS created_at,
           COUNT(*) AS chunk_count
    FROM audio_chunks
    GROUP BY session_id
    HAVING MIN(start_time) >= %(start)s AND MIN(start_time) < %(end)s
    ORDER BY started_at ASC
"""

_COMPLETION_QUERY = """
    SELECT COUNT(DISTINCT ac.id) AS total_chunks,
           COUNT(DISTINCT ts.audio_chunk_id) AS transcribed_chunks
    FROM audio_chunks ac
    LEFT JOIN transcript_segments ts ON ac.id = ts.audio_chunk_id
    WHERE ac.session_id = %(session_id)s
"""


class AudioChunkRepository(BaseRepository[AudioChunk]):
    """Data access object encapsulating audio chunk persistence logic."""

    table_name = "audio_chunks"
    model_type = AudioChunk
    insert_fields = (
        "id",
        "session_id",
        "chunk_index",
        "start_time",
        "end_time",
        "created_at",
    )

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def list_for_session(self, session_id: UUID) -> list[AudioChunk]:
        """Return the chunks of one session ordered by their index."""

        return self.fetch_all(
            "session_id = %(session_id)s",
            {"session_id": str(session_id)},
            order_by="chunk_index ASC",
        )

    def list_sessions_in_range(self, start: datetime, end: datetime) -> list[RecordingSession]:
        """Return sessions whose first chunk starts within ``[start, end)``."""

        rows = self._fetch_many(_SESSIONS_IN_RANGE_QUERY, {"start": start, "end": end})
        return [RecordingSession.model_validate(row) for row in rows]

    def is_session_complete(self, session_id: UUID) -> bool:
        """Return ``True`` when every chunk of the session has at least one transcript segment."""

        try:
            row = self._fetch_one(_COMPLETION_QUERY, {"session_id": str(session_id)})
        except RecordNotFoundError:
            return False
        total = int(row["total_chunks"] or 0)
        transcribed = int(row["transcribed_chunks"] or 0)
        return total > 0 and total == transcribed


__all__ = ["AudioChunkRepository"]
