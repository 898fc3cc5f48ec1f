"""In-process publish/subscribe channel for summary and transcription notifications."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from uuid import UUID

from pydantic import Field
from rich.console import Console

from lifewrap.models.base import LifeWrapBaseModel, utcnow
from lifewrap.models.queue import TranscriptionStatus
from lifewrap.models.summary import PeriodType


class EventKind(str, Enum):
    """Notifications emitted by the summary pipeline."""

    SESSION_SUMMARY_SAVED = "session_summary_saved"
    PERIOD_SUMMARY_SAVED = "period_summary_saved"
    SUMMARIES_UPDATED = "summaries_updated"
    TRANSCRIPTION_STATUS_CHANGED = "transcription_status_changed"


class SummaryEvent(LifeWrapBaseModel):
    """Payload delivered to subscribers; optional fields depend on ``kind``."""

    kind: EventKind
    period_type: Optional[PeriodType] = None
    period_start: Optional[datetime] = None
    session_id: Optional[UUID] = None
    summary_id: Optional[UUID] = None
    status: Optional[TranscriptionStatus] = None
    emitted_at: datetime = Field(default_factory=utcnow)


EventHandler = Callable[[SummaryEvent], None]


class EventBus:
    """Fan events out to subscribers without letting a failing subscriber affect the publisher."""

    def __init__(self, *, console: Optional[Console] = None) -> None:
        self._console = console or Console()
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unregisters it."""

        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: SummaryEvent) -> None:
        """Deliver ``event`` to every subscriber in registration order."""

        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as exc:  # subscriber failures are reported, never propagated
                self._console.log(f"[yellow]Event handler failed for {event.kind.value}:[/yellow] {exc}")


__all__ = ["EventBus", "EventHandler", "EventKind", "SummaryEvent"]
