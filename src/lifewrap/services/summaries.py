"""Application-facing coordinator for session summaries and period rollups."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from rich.console import Console

from lifewrap.config.settings import Settings, get_settings
from lifewrap.models import PeriodType, Summary
from lifewrap.services import SummarizationEngine, TranscriptStore
from lifewrap.services.events import EventBus
from lifewrap.services.guard import GenerationGuard
from lifewrap.services.rollups import PeriodRollupEngine
from lifewrap.services.sessions import SessionSummarizer
from lifewrap.utils.periods import localize


class SummaryCoordinator:
    """Wire the session summarizer and the rollup engine around one store and engine.

    Session summaries propagate into the rollups, and the day rollup generates any session
    summary it finds missing. That second path runs without propagation because the caller is
    already inside the rollup chain.
    """

    def __init__(
        self,
        *,
        store: TranscriptStore,
        engine: SummarizationEngine,
        events: EventBus,
        guard: Optional[GenerationGuard] = None,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._guard = guard or GenerationGuard()
        self.events = events
        self.rollups = PeriodRollupEngine(
            store=store,
            engine=engine,
            guard=self._guard,
            events=events,
            session_generator=self._generate_missing_session,
            settings=self._settings,
            console=self._console,
        )
        self.sessions = SessionSummarizer(
            store=store,
            engine=engine,
            events=events,
            period_updater=self.rollups.update_period_summaries,
            console=self._console,
        )

    @property
    def guard(self) -> GenerationGuard:
        return self._guard

    # ------------------------------------------------------------------ #
    # Session summaries                                                  #
    # ------------------------------------------------------------------ #
    async def generate_session_summary(
        self,
        session_id: UUID,
        *,
        force_regenerate: bool = False,
        include_notes: bool = False,
    ) -> Summary:
        return await self.sessions.generate_session_summary(
            session_id,
            force_regenerate=force_regenerate,
            include_notes=include_notes,
        )

    async def check_and_generate_session_summary(self, session_id: UUID) -> bool:
        return await self.sessions.check_and_generate_session_summary(session_id)

    async def append_notes_to_session_summary(self, session_id: UUID, notes: str) -> Summary:
        return await self.sessions.append_notes_to_session_summary(session_id, notes)

    async def fetch_session_summary(self, session_id: UUID) -> Optional[Summary]:
        return await self._store.fetch_summary_for_session(session_id)

    # ------------------------------------------------------------------ #
    # Period summaries                                                   #
    # ------------------------------------------------------------------ #
    async def update_period_summaries(self, session_date: datetime) -> None:
        await self.rollups.update_period_summaries(session_date)

    async def update_period_summary(
        self, level: PeriodType, moment: datetime, force_regenerate: bool = False
    ) -> Optional[Summary]:
        """Dispatch to the rollup operation for ``level``."""

        operations = {
            PeriodType.DAY: self.rollups.update_daily_summary,
            PeriodType.WEEK: self.rollups.update_weekly_summary,
            PeriodType.MONTH: self.rollups.update_monthly_summary,
            PeriodType.YEAR: self.rollups.update_yearly_summary,
            PeriodType.YEAR_WRAP: self.rollups.wrap_up_year,
        }
        operation = operations.get(level)
        if operation is None:
            raise ValueError(f"{level.value!r} summaries are not rolled up.")
        return await operation(moment, force_regenerate)

    async def wrap_up_year(self, moment: datetime, force_regenerate: bool = False) -> Optional[Summary]:
        return await self.rollups.wrap_up_year(moment, force_regenerate)

    async def fetch_period_summary(self, level: PeriodType, moment: datetime) -> Optional[Summary]:
        """Return the stored summary of ``level`` containing ``moment`` (naive moments are local)."""

        return await self._store.fetch_period_summary(level, localize(moment, self._settings.zone))

    async def get_new_sessions_since_year_wrap(self, year_wrap: Summary, year: int) -> int:
        return await self.rollups.get_new_sessions_since_year_wrap(year_wrap, year)

    async def _generate_missing_session(self, session_id: UUID) -> Summary:
        return await self.sessions.generate_missing_session_summary(session_id)


__all__ = ["SummaryCoordinator"]
