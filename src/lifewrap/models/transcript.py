"""Pydantic models for transcript storage and processing."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field

from lifewrap.models.base import LifeWrapBaseModel, utcnow


def count_words(text: str) -> int:
    """Return the number of whitespace-separated words in ``text``."""

    return len(text.split())


class TranscriptSegment(LifeWrapBaseModel):
    """Domain model representing a row in the ``transcript_segments`` table.

    One recognised utterance inside an audio chunk. Offsets are seconds relative to the start
    of the owning chunk. Users may edit ``text`` later, which invalidates summary caches
    downstream because every cache key is derived from transcript text.
    """

    id: UUID = Field(default_factory=uuid4)
    audio_chunk_id: UUID
    start_time: float = Field(ge=0.0)
    end_time: float = Field(ge=0.0)
    text: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    language_code: str = Field(default="en", min_length=2, max_length=16)
    sentiment_score: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    word_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def duration(self) -> float:
        return max(0.0, self.end_time - self.start_time)


__all__ = ["TranscriptSegment", "count_words"]
