"""Persistence layer exposing the journal tables to the async summary pipeline."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence, TypeVar
from uuid import UUID

from psycopg2 import Error as DatabaseError
from rich.console import Console

from lifewrap.config.settings import Settings, get_settings
from lifewrap.db import ConnectionFactory
from lifewrap.db.chunk_repository import AudioChunkRepository
from lifewrap.db.connection import get_connection
from lifewrap.db.migrate import MigrationError, run_migrations
from lifewrap.db.repositories import RepositoryError
from lifewrap.db.session_repository import SessionMetadataRepository
from lifewrap.db.summary_repository import SummaryRepository
from lifewrap.db.transcript_repository import TranscriptSegmentRepository
from lifewrap.models import (
    AudioChunk,
    PeriodType,
    RecordingSession,
    SessionMetadata,
    Summary,
    TranscriptSegment,
)

ResultT = TypeVar("ResultT")


class StorageError(RuntimeError):
    """Base exception raised when persistence fails."""


class StorageService:
    """Async facade over the Postgres repositories.

    Repository calls are blocking psycopg2 round trips, so every operation is pushed onto a
    worker thread; the event loop only ever awaits them.
    """

    _migrations_applied: bool = False

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        auto_migrate: bool = True,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._connection_factory = connection_factory or get_connection
        self._chunk_repo = AudioChunkRepository(self._connection_factory)
        self._segment_repo = TranscriptSegmentRepository(self._connection_factory)
        self._metadata_repo = SessionMetadataRepository(self._connection_factory)
        self._summary_repo = SummaryRepository(self._connection_factory)

        if auto_migrate and not StorageService._migrations_applied:
            try:
                run_migrations(console=self._console, settings=self._settings)
            except (MigrationError, DatabaseError) as exc:
                raise StorageError(f"Failed to run database migrations: {exc}") from exc
            StorageService._migrations_applied = True

    # ------------------------------------------------------------------ #
    # Chunks and transcripts                                             #
    # ------------------------------------------------------------------ #
    async def save_chunk(self, chunk: AudioChunk) -> AudioChunk:
        return await self._run(self._chunk_repo.insert, chunk)

    async def fetch_chunk(self, chunk_id: UUID) -> Optional[AudioChunk]:
        return await self._run(self._chunk_repo.find_by_id, chunk_id)

    async def fetch_chunks_by_session(self, session_id: UUID) -> list[AudioChunk]:
        return await self._run(self._chunk_repo.list_for_session, session_id)

    async def fetch_transcript_segments(self, chunk_id: UUID) -> list[TranscriptSegment]:
        return await self._run(self._segment_repo.list_for_chunk, chunk_id)

    async def insert_transcript_segments(self, segments: Sequence[TranscriptSegment]) -> None:
        await self._run(self._segment_repo.insert_many, list(segments))

    async def update_transcript_segment_text(self, segment_id: UUID, text: str) -> TranscriptSegment:
        """Apply a user edit to one segment; downstream caches notice via their input hashes."""

        return await self._run(self._segment_repo.update_text, segment_id, text)

    async def is_session_transcription_complete(self, session_id: UUID) -> bool:
        return await self._run(self._chunk_repo.is_session_complete, session_id)

    async def fetch_sessions_in_range(self, start: datetime, end: datetime) -> list[RecordingSession]:
        return await self._run(self._chunk_repo.list_sessions_in_range, start, end)

    # ------------------------------------------------------------------ #
    # Session metadata                                                   #
    # ------------------------------------------------------------------ #
    async def fetch_session_metadata(self, session_id: UUID) -> Optional[SessionMetadata]:
        return await self._run(self._metadata_repo.find_for_session, session_id)

    async def fetch_session_metadata_batch(self, session_ids: Sequence[UUID]) -> Dict[UUID, SessionMetadata]:
        return await self._run(self._metadata_repo.find_many, list(session_ids))

    async def save_session_metadata(self, metadata: SessionMetadata) -> SessionMetadata:
        return await self._run(self._metadata_repo.save, metadata)

    # ------------------------------------------------------------------ #
    # Summaries                                                          #
    # ------------------------------------------------------------------ #
    async def fetch_summary_for_session(self, session_id: UUID) -> Optional[Summary]:
        return await self._run(self._summary_repo.find_for_session, session_id)

    async def insert_summary(self, summary: Summary) -> Summary:
        return await self._run(self._summary_repo.insert, summary)

    async def delete_summary(self, summary_id: UUID) -> None:
        await self._run(self._summary_repo.delete_by_id, summary_id)

    async def fetch_period_summary(self, period_type: PeriodType, moment: datetime) -> Optional[Summary]:
        return await self._run(self._summary_repo.find_containing, period_type, moment)

    async def fetch_summaries_in_range(
        self, period_type: PeriodType, start: datetime, end: datetime
    ) -> list[Summary]:
        return await self._run(self._summary_repo.list_in_range, period_type, start, end)

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
    ) -> Summary:
        if period_type is PeriodType.SESSION:
            raise StorageError("Session summaries are replaced via insert_summary, not upserted.")
        return await self._run(
            lambda: self._summary_repo.upsert_period(
                period_type=period_type,
                text=text,
                start=start,
                end=end,
                topics_json=topics_json,
                entities_json=entities_json,
                engine_tier=engine_tier,
                source_ids=source_ids,
                input_hash=input_hash,
            )
        )

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    async def _run(self, operation: Callable[..., ResultT], *args: object) -> ResultT:
        try:
            return await asyncio.to_thread(operation, *args)
        except (RepositoryError, DatabaseError) as exc:
            raise StorageError(str(exc)) from exc


__all__ = ["StorageError", "StorageService"]
