"""Bounded-concurrency transcription queue feeding the session summarizer."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Optional, Set
from uuid import UUID

from rich.console import Console

from lifewrap.config.settings import Settings, get_settings
from lifewrap.models import AudioChunk, TranscriptionStatus
from lifewrap.models.transcript import count_words
from lifewrap.services import Transcriber, TranscriptStore
from lifewrap.services.events import EventBus, EventKind, SummaryEvent
from lifewrap.utils.rate_limit import RateLimiter, create_limiter

SessionCompletionHandler = Callable[[UUID], Awaitable[object]]


class TranscriptionError(RuntimeError):
    """Raised when a chunk cannot be transcribed."""


class TranscriptionQueue:
    """Transcribe chunks with at most ``max_concurrent_transcriptions`` in flight.

    Admission is continuous: whenever a transcription finishes, the freed slot is refilled from
    the FIFO backlog immediately. Each chunk ends up in exactly one of the ``transcribed`` or
    ``failed`` sets. Once a chunk's segments are persisted, ``on_session_complete`` runs for its
    session; a session with a failed chunk never becomes complete, so it is never summarised
    until that chunk is retried successfully.
    """

    def __init__(
        self,
        *,
        store: TranscriptStore,
        transcriber: Transcriber,
        events: EventBus,
        on_session_complete: SessionCompletionHandler,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        max_concurrent: Optional[int] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._store = store
        self._transcriber = transcriber
        self._events = events
        self._on_session_complete = on_session_complete
        self._max_concurrent = max_concurrent or int(self._settings.max_concurrent_transcriptions)
        self._rate_limiter: Optional[RateLimiter] = create_limiter("transcription", self._settings.rate_limits)
        self._pending: Deque[UUID] = deque()
        self._active = 0
        self._tasks: Set[asyncio.Task[None]] = set()
        self._transcribing: Set[UUID] = set()
        self._transcribed: Set[UUID] = set()
        self._failed: Set[UUID] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def status(self) -> TranscriptionStatus:
        """Return a snapshot of the transcribing, transcribed and failed chunk ids."""

        return TranscriptionStatus(
            transcribing=frozenset(self._transcribing),
            transcribed=frozenset(self._transcribed),
            failed=frozenset(self._failed),
        )

    async def enqueue(self, chunk_id: UUID) -> None:
        """Append ``chunk_id`` to the backlog and start it as soon as a slot is free."""

        self._pending.append(chunk_id)
        self._idle.clear()
        self._drain()

    async def retry_transcription(self, chunk_id: UUID) -> None:
        """Re-enqueue a failed chunk. Manual retries are unlimited."""

        self._failed.discard(chunk_id)
        self._publish_status()
        await self.enqueue(chunk_id)

    async def wait_until_idle(self) -> None:
        """Block until the backlog is empty and no transcription is running."""

        await self._idle.wait()

    def get_queue_status(self) -> Dict[str, int]:
        """Return counts describing queue progress."""

        return {
            "pending": len(self._pending),
            "transcribing": len(self._transcribing),
            "transcribed": len(self._transcribed),
            "failed": len(self._failed),
            "active": self._active,
        }

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _drain(self) -> None:
        while self._pending and self._active < self._max_concurrent:
            chunk_id = self._pending.popleft()
            self._active += 1
            self._transcribed.discard(chunk_id)
            self._transcribing.add(chunk_id)
            self._publish_status()
            task = asyncio.create_task(self._run(chunk_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if not self._pending and self._active == 0:
            self._idle.set()

    async def _run(self, chunk_id: UUID) -> None:
        try:
            await self._process_chunk(chunk_id)
        finally:
            self._active -= 1
            self._drain()

    async def _process_chunk(self, chunk_id: UUID) -> None:
        """Transcribe one chunk, persist its segments and trigger the session check."""

        try:
            chunk = await self._store.fetch_chunk(chunk_id)
            if chunk is None:
                raise TranscriptionError(f"Audio chunk {chunk_id} not found.")
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()
            await self._transcribe(chunk)
        except Exception as exc:
            self._console.log(f"[red]Transcription failed for chunk {chunk_id}:[/red] {exc}")
            self._finish(chunk_id, succeeded=False)
            return

        self._finish(chunk_id, succeeded=True)
        try:
            await self._on_session_complete(chunk.session_id)
        except Exception as exc:
            self._console.log(f"[red]Session completion check failed for {chunk.session_id}:[/red] {exc}")

    async def _transcribe(self, chunk: AudioChunk) -> None:
        segments = await self._transcriber.transcribe(chunk)
        prepared = [
            segment.model_copy(
                update={
                    "audio_chunk_id": chunk.id,
                    "word_count": segment.word_count or count_words(segment.text),
                }
            )
            for segment in segments
        ]
        if not prepared:
            self._console.log(f"[yellow]No speech recognised in chunk {chunk.id}[/yellow]")
            return
        await self._store.insert_transcript_segments(prepared)
        self._console.log(f"Transcribed chunk {chunk.chunk_index} of session {chunk.session_id} ({len(prepared)} segments)")

    def _finish(self, chunk_id: UUID, *, succeeded: bool) -> None:
        self._transcribing.discard(chunk_id)
        if succeeded:
            self._transcribed.add(chunk_id)
        else:
            self._failed.add(chunk_id)
        self._publish_status()

    def _publish_status(self) -> None:
        self._events.publish(SummaryEvent(kind=EventKind.TRANSCRIPTION_STATUS_CHANGED, status=self.status))


__all__ = ["SessionCompletionHandler", "TranscriptionError", "TranscriptionQueue"]
