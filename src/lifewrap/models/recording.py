"""Pydantic models describing recorded audio chunks and the sessions they form."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, model_validator

from lifewrap.models.base import LifeWrapBaseModel, utcnow


class SessionCategory(str, Enum):
    """User-assigned classification for a recording session."""

    WORK = "work"
    PERSONAL = "personal"

    @property
    def display_name(self) -> str:
        return self.value.title()


class AudioChunk(LifeWrapBaseModel):
    """Domain model representing a row in the ``audio_chunks`` table.

    Chunks are written by the capture subsystem and never modified afterwards. Every chunk
    belongs to exactly one session; ``chunk_index`` orders chunks within that session.
    """

    id: UUID = Field(default_factory=uuid4)
    session_id: UUID
    chunk_index: int = Field(ge=0)
    start_time: datetime
    end_time: datetime
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_time_range(self) -> "AudioChunk":
        if self.end_time < self.start_time:
            raise ValueError("Chunk end_time must not precede start_time.")
        return self


class SessionMetadata(LifeWrapBaseModel):
    """User-editable metadata attached to a recording session."""

    session_id: UUID
    title: Optional[str] = None
    notes: Optional[str] = None
    is_favorite: bool = False
    category: Optional[SessionCategory] = None

    @property
    def has_notes(self) -> bool:
        return bool(self.notes and self.notes.strip())


class RecordingSession(LifeWrapBaseModel):
    """A session derived by grouping chunks that share a session identifier."""

    session_id: UUID
    started_at: datetime
    created_at: datetime
    chunk_count: int = Field(ge=1)


__all__ = ["AudioChunk", "RecordingSession", "SessionCategory", "SessionMetadata"]
