"""Service layer for the LifeWrap application.

The summary pipeline talks to its collaborators only through the protocols below, so the
Postgres store and the Pydantic AI engine can be swapped for in-memory doubles.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from lifewrap.models import (
    AudioChunk,
    PeriodType,
    RecordingSession,
    SessionMetadata,
    Summary,
    TranscriptSegment,
)

ChunkText = Tuple[UUID, str]


class TranscriptStore(Protocol):
    """Durable store of chunks, transcript segments, session metadata and summaries."""

    async def fetch_chunk(self, chunk_id: UUID) -> Optional[AudioChunk]: ...

    async def fetch_chunks_by_session(self, session_id: UUID) -> list[AudioChunk]: ...

    async def fetch_transcript_segments(self, chunk_id: UUID) -> list[TranscriptSegment]: ...

    async def insert_transcript_segments(self, segments: Sequence[TranscriptSegment]) -> None: ...

    async def is_session_transcription_complete(self, session_id: UUID) -> bool: ...

    async def fetch_session_metadata(self, session_id: UUID) -> Optional[SessionMetadata]: ...

    async def fetch_session_metadata_batch(self, session_ids: Sequence[UUID]) -> Dict[UUID, SessionMetadata]: ...

    async def fetch_sessions_in_range(self, start: datetime, end: datetime) -> list[RecordingSession]: ...

    async def fetch_summary_for_session(self, session_id: UUID) -> Optional[Summary]: ...

    async def insert_summary(self, summary: Summary) -> Summary: ...

    async def delete_summary(self, summary_id: UUID) -> None: ...

    async def fetch_period_summary(self, period_type: PeriodType, moment: datetime) -> Optional[Summary]: ...

    async def fetch_summaries_in_range(
        self, period_type: PeriodType, start: datetime, end: datetime
    ) -> list[Summary]: ...

    async def upsert_period_summary(
        self,
        period_type: PeriodType,
        text: str,
        start: datetime,
        end: datetime,
        *,
        topics_json: Optional[str] = None,
        entities_json: Optional[str] = None,
        engine_tier: Optional[str] = None,
        source_ids: Optional[str] = None,
        input_hash: Optional[str] = None,
    ) -> Summary: ...


class SummarizationEngine(Protocol):
    """Backend that turns transcripts and child summaries into natural-language summaries."""

    @property
    def engine_tier(self) -> str: ...

    async def generate_session_summary(
        self,
        session_id: UUID,
        segments: Sequence[TranscriptSegment],
        *,
        context: Optional[str] = None,
    ) -> Summary: ...

    async def generate_year_wrap_summary(
        self,
        start_of_year: datetime,
        end_of_year: datetime,
        source_summaries: Sequence[Summary],
        *,
        category_context: Optional[str] = None,
    ) -> Summary: ...

    def clear_changed_chunk_summaries(self, chunk_texts: Sequence[ChunkText]) -> list[UUID]: ...

    def unload_model(self) -> None: ...


class Transcriber(Protocol):
    """Speech-to-text engine producing segments for one audio chunk."""

    async def transcribe(self, chunk: AudioChunk) -> list[TranscriptSegment]: ...


__all__ = ["ChunkText", "SummarizationEngine", "Transcriber", "TranscriptStore"]
