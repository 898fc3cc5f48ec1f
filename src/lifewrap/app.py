"""Bootstrap wiring for the LifeWrap summary pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from lifewrap.config.settings import Settings, get_settings
from lifewrap.services import SummarizationEngine, Transcriber, TranscriptStore
from lifewrap.services.events import EventBus
from lifewrap.services.guard import GenerationGuard
from lifewrap.services.queue import TranscriptionQueue
from lifewrap.services.storage import StorageService
from lifewrap.services.summaries import SummaryCoordinator
from lifewrap.services.summarization import SummarizationService


@dataclass(slots=True)
class JournalApplication:
    """Fully constructed services sharing one store, engine, guard and event bus."""

    settings: Settings
    console: Console
    store: TranscriptStore
    engine: SummarizationEngine
    events: EventBus
    guard: GenerationGuard
    summaries: SummaryCoordinator
    queue: Optional[TranscriptionQueue] = None


def build_application(
    settings: Optional[Settings] = None,
    console: Optional[Console] = None,
    transcriber: Optional[Transcriber] = None,
    *,
    store: Optional[TranscriptStore] = None,
    engine: Optional[SummarizationEngine] = None,
) -> JournalApplication:
    """Construct every service once, in dependency order.

    The Postgres store and the Pydantic AI engine are the defaults; tests pass in-memory
    doubles instead. The transcription queue is only built when a transcriber is supplied.
    """

    settings = settings or get_settings()
    console = console or Console()
    store = store or StorageService(settings=settings, console=console)
    engine = engine or SummarizationService(settings=settings, console=console)
    events = EventBus(console=console)
    guard = GenerationGuard()
    summaries = SummaryCoordinator(
        store=store,
        engine=engine,
        events=events,
        guard=guard,
        settings=settings,
        console=console,
    )

    queue: Optional[TranscriptionQueue] = None
    if transcriber is not None:
        queue = TranscriptionQueue(
            store=store,
            transcriber=transcriber,
            events=events,
            on_session_complete=summaries.check_and_generate_session_summary,
            settings=settings,
            console=console,
        )

    return JournalApplication(
        settings=settings,
        console=console,
        store=store,
        engine=engine,
        events=events,
        guard=guard,
        summaries=summaries,
        queue=queue,
    )


__all__ = ["JournalApplication", "build_application"]
