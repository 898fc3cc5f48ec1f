"""Pydantic models describing transcription queue state."""

from __future__ import annotations

from typing import FrozenSet
from uuid import UUID

from pydantic import Field

from lifewrap.models.base import LifeWrapBaseModel


class TranscriptionStatus(LifeWrapBaseModel):
    """Snapshot of the observable chunk id sets maintained by the transcription queue.

    A chunk id appears in at most one of the three sets at any time.
    """

    transcribing: FrozenSet[UUID] = Field(default_factory=frozenset)
    transcribed: FrozenSet[UUID] = Field(default_factory=frozenset)
    failed: FrozenSet[UUID] = Field(default_factory=frozenset)


__all__ = ["TranscriptionStatus"]
