"""Domain models shared by LifeWrap services and repositories."""

from lifewrap.models.base import LifeWrapBaseModel
from lifewrap.models.progress import SummaryOutput, YearWrapOutput
from lifewrap.models.queue import TranscriptionStatus
from lifewrap.models.recording import AudioChunk, RecordingSession, SessionCategory, SessionMetadata
from lifewrap.models.summary import PeriodType, Summary
from lifewrap.models.transcript import TranscriptSegment

__all__ = [
    "AudioChunk",
    "LifeWrapBaseModel",
    "PeriodType",
    "RecordingSession",
    "SessionCategory",
    "SessionMetadata",
    "Summary",
    "SummaryOutput",
    "TranscriptSegment",
    "TranscriptionStatus",
    "YearWrapOutput",
]
