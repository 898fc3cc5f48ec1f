"""Produce and refresh the single summary attached to each recording session."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple
from uuid import UUID

from rich.console import Console

from lifewrap.models import AudioChunk, PeriodType, SessionMetadata, Summary, TranscriptSegment
from lifewrap.services import ChunkText, SummarizationEngine, TranscriptStore
from lifewrap.services.events import EventBus, EventKind, SummaryEvent
from lifewrap.utils.hashing import compute_input_hash

PeriodUpdater = Callable[[datetime], Awaitable[None]]

NOTES_HEADING = "Additional Notes:"


class SummaryGenerationError(RuntimeError):
    """Base exception for failures while producing a session summary."""


class EmptyTranscriptError(SummaryGenerationError):
    """Raised when a session has no transcribed text to summarise."""


class SessionSummaryNotFoundError(SummaryGenerationError):
    """Raised when an operation needs an existing session summary and none is stored."""


@dataclass(slots=True)
class _SessionLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


def category_tag(metadata: Optional[SessionMetadata]) -> Optional[str]:
    """Return the category line shown to the engine ahead of a session transcript."""

    if metadata is None or metadata.category is None:
        return None
    return f"[Recording Category: {metadata.category.display_name.upper()}]"


class SessionSummarizer:
    """Generate session summaries with hash-based caching.

    The stored ``input_hash`` covers the transcript plus whatever context (category tag and,
    when requested, the user's notes) the engine is shown, so editing either one invalidates
    the cached summary.
    """

    def __init__(
        self,
        *,
        store: TranscriptStore,
        engine: SummarizationEngine,
        events: EventBus,
        period_updater: PeriodUpdater,
        console: Optional[Console] = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._events = events
        self._period_updater = period_updater
        self._console = console or Console()
        self._session_locks: Dict[UUID, _SessionLock] = {}

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def generate_session_summary(
        self,
        session_id: UUID,
        *,
        force_regenerate: bool = False,
        include_notes: bool = False,
        propagate: bool = True,
    ) -> Summary:
        """Create or refresh the summary for ``session_id``.

        Returns the stored summary, which is the existing row on a cache hit. When
        ``propagate`` is true the day, week, month and year rollups containing the session are
        refreshed afterwards.

        Raises
        ------
        EmptyTranscriptError
            If no segment of the session carries any text.
        """

        chunks, chunk_segments = await self._fetch_session_transcript(session_id)
        segments = sorted(
            (segment for _, segment_list in chunk_segments for segment in segment_list),
            key=lambda segment: segment.created_at,
        )
        transcript_text = " ".join(segment.text for segment in segments)
        if not transcript_text.strip():
            raise EmptyTranscriptError(f"Session {session_id} has no transcript text.")

        metadata = await self._store.fetch_session_metadata(session_id)
        context = self._build_context(metadata, include_notes=include_notes)
        hash_inputs = [transcript_text] if context is None else [transcript_text, context]
        input_hash = compute_input_hash(hash_inputs)

        if not force_regenerate:
            existing = await self._store.fetch_summary_for_session(session_id)
            if existing is not None and existing.input_hash == input_hash:
                self._console.log(f"Session {session_id} summary unchanged (hash {input_hash}); skipping")
                return existing

        period_start = chunks[0].start_time
        period_end = chunks[-1].end_time

        if force_regenerate:
            chunk_texts: List[ChunkText] = [
                (chunk.id, " ".join(segment.text for segment in segment_list))
                for chunk, segment_list in chunk_segments
            ]
            stale = self._engine.clear_changed_chunk_summaries(chunk_texts)
            self._console.log(f"{len(stale)} of {len(chunks)} chunks need reprocessing for session {session_id}")

        generated = await self._engine.generate_session_summary(session_id, segments, context=context)
        summary = generated.model_copy(
            update={
                "period_type": PeriodType.SESSION,
                "period_start": period_start,
                "period_end": period_end,
                "session_id": session_id,
                "engine_tier": generated.engine_tier or self._engine.engine_tier,
                "input_hash": input_hash,
            }
        )

        saved = await self._replace(summary)
        self._console.log(f"Saved summary for session {session_id} (engine: {saved.engine_tier})")

        if propagate:
            await self._period_updater(period_start)

        self._events.publish(SummaryEvent(kind=EventKind.SUMMARIES_UPDATED, session_id=session_id))
        self._engine.unload_model()
        return saved

    async def check_and_generate_session_summary(self, session_id: UUID) -> bool:
        """Summarise a session once every chunk has transcript segments.

        Returns ``True`` only when a summary was generated. Failures are logged rather than
        raised; the next completion check retries because no summary was stored. Overlapping
        checks and day-rollup generations for the same session run one at a time.
        """

        async with self._session_lock(session_id):
            try:
                if not await self._store.is_session_transcription_complete(session_id):
                    self._console.log(f"Session {session_id} still transcribing; summary deferred")
                    return False
                if await self._store.fetch_summary_for_session(session_id) is not None:
                    return False
                await self.generate_session_summary(session_id)
                return True
            except Exception as exc:
                self._console.log(f"[red]Failed to summarise session {session_id}:[/red] {exc}")
                return False

    async def generate_missing_session_summary(self, session_id: UUID) -> Summary:
        """Summarise a finished session found without a summary, without propagating.

        Shares the per-session lock with :meth:`check_and_generate_session_summary` and
        returns the stored summary when another caller produced it in the meantime.
        """

        async with self._session_lock(session_id):
            existing = await self._store.fetch_summary_for_session(session_id)
            if existing is not None:
                return existing
            return await self.generate_session_summary(session_id, propagate=False)

    @property
    def locked_sessions(self) -> FrozenSet[UUID]:
        """Sessions with a summary generation holding or waiting on their lock."""

        return frozenset(self._session_locks)

    async def append_notes_to_session_summary(self, session_id: UUID, notes: str) -> Summary:
        """Append user notes to the stored summary text without calling the engine."""

        existing = await self._store.fetch_summary_for_session(session_id)
        if existing is None:
            raise SessionSummaryNotFoundError(f"No summary stored for session {session_id}.")

        updated = existing.model_copy(update={"text": f"{existing.text}\n\n{NOTES_HEADING}\n{notes}"})
        return await self._replace(updated)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    async def _fetch_session_transcript(
        self, session_id: UUID
    ) -> Tuple[List[AudioChunk], List[Tuple[AudioChunk, List[TranscriptSegment]]]]:
        chunks = await self._store.fetch_chunks_by_session(session_id)
        chunk_segments: List[Tuple[AudioChunk, List[TranscriptSegment]]] = []
        for chunk in chunks:
            chunk_segments.append((chunk, await self._store.fetch_transcript_segments(chunk.id)))
        return chunks, chunk_segments

    @asynccontextmanager
    async def _session_lock(self, session_id: UUID) -> AsyncIterator[None]:
        """Hold the lock for ``session_id``; the entry is dropped once no caller needs it."""

        entry = self._session_locks.get(session_id)
        if entry is None:
            entry = self._session_locks[session_id] = _SessionLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if not entry.users:
                del self._session_locks[session_id]

    async def _replace(self, summary: Summary) -> Summary:
        """Delete-then-insert so a session never holds more than one summary row."""

        if summary.session_id is None:
            raise SummaryGenerationError("Only session summaries can replace a session's summary row.")
        existing = await self._store.fetch_summary_for_session(summary.session_id)
        if existing is not None:
            await self._store.delete_summary(existing.id)
        saved = await self._store.insert_summary(summary)
        self._events.publish(
            SummaryEvent(
                kind=EventKind.SESSION_SUMMARY_SAVED,
                period_type=PeriodType.SESSION,
                period_start=saved.period_start,
                session_id=saved.session_id,
                summary_id=saved.id,
            )
        )
        return saved

    @staticmethod
    def _build_context(metadata: Optional[SessionMetadata], *, include_notes: bool) -> Optional[str]:
        parts: Sequence[Optional[str]] = (
            category_tag(metadata),
            f"Additional context from user notes:\n{metadata.notes.strip()}"
            if include_notes and metadata is not None and metadata.has_notes and metadata.notes
            else None,
        )
        present = [part for part in parts if part]
        return "\n\n".join(present) if present else None


__all__ = [
    "EmptyTranscriptError",
    "PeriodUpdater",
    "SessionSummarizer",
    "SessionSummaryNotFoundError",
    "SummaryGenerationError",
    "category_tag",
]
