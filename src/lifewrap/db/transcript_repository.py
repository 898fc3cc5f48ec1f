"""Repository for interacting with the `transcript_segments` table."""

from __future__ import annotations

from uuid import UUID

from lifewrap.db import ConnectionFactory
from lifewrap.db.repositories import BaseRepository
from lifewrap.models.transcript import TranscriptSegment, count_words


class TranscriptSegmentRepository(BaseRepository[TranscriptSegment]):
    """Data access object encapsulating transcript segment persistence logic."""

    table_name = "transcript_segments"
    model_type = TranscriptSegment
    insert_fields = (
        "id",
        "audio_chunk_id",
        "start_time",
        "end_time",
        "text",
        "confidence",
        "language_code",
        "sentiment_score",
        "word_count",
        "created_at",
    )

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def list_for_chunk(self, chunk_id: UUID) -> list[TranscriptSegment]:
        """Return a chunk's segments in recognition order."""

        return self.fetch_all(
            "audio_chunk_id = %(chunk_id)s",
            {"chunk_id": str(chunk_id)},
            order_by="created_at ASC, start_time ASC",
        )

    def update_text(self, segment_id: UUID, text: str) -> TranscriptSegment:
        """Replace a segment's text after a user edit and recompute its word count."""

        row = self._fetch_one(
            "UPDATE transcript_segments SET text = %(text)s, word_count = %(word_count)s "
            "WHERE id = %(id)s RETURNING *",
            {"id": str(segment_id), "text": text, "word_count": count_words(text)},
        )
        return self.model_type.model_validate(row)


__all__ = ["TranscriptSegmentRepository"]
