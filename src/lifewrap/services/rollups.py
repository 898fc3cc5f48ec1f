"""Aggregate child summaries into day, week, month and year rollups plus the Year Wrap."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from rich.console import Console

from lifewrap.config.settings import Settings, get_settings
from lifewrap.models import PeriodType, SessionCategory, SessionMetadata, Summary
from lifewrap.models.summary import ROLLUP_ENGINE_TIER
from lifewrap.services import SummarizationEngine, TranscriptStore
from lifewrap.services.events import EventBus, EventKind, SummaryEvent
from lifewrap.services.guard import GenerationGuard
from lifewrap.utils.hashing import compute_input_hash, source_ids_to_json
from lifewrap.utils.periods import PeriodKey, localize, period_bounds

SessionGenerator = Callable[[UUID], Awaitable[object]]

BULLET = "•"

# Child level read for each rollup, with the level used when the first yields nothing.
_CHILD_LEVELS: Dict[PeriodType, tuple[PeriodType, Optional[PeriodType]]] = {
    PeriodType.WEEK: (PeriodType.DAY, None),
    PeriodType.MONTH: (PeriodType.WEEK, PeriodType.DAY),
    PeriodType.YEAR: (PeriodType.MONTH, PeriodType.WEEK),
    PeriodType.YEAR_WRAP: (PeriodType.MONTH, PeriodType.WEEK),
}


@dataclass(slots=True)
class RollupInputs:
    """Ordered children of one period and the lines their hash and text are built from."""

    children: List[Summary] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)

    @property
    def source_ids(self) -> List[UUID]:
        return [child.session_id or child.id for child in self.children]


def build_category_context(categories: Dict[UUID, SessionCategory]) -> Optional[str]:
    """Describe the year's work/personal split so the Year Wrap can label its insights."""

    work_count = sum(1 for category in categories.values() if category is SessionCategory.WORK)
    personal_count = sum(1 for category in categories.values() if category is SessionCategory.PERSONAL)
    if not work_count and not personal_count:
        return None

    parts: List[str] = []
    if work_count:
        parts.append(f"{work_count} work session{'' if work_count == 1 else 's'}")
    if personal_count:
        parts.append(f"{personal_count} personal session{'' if personal_count == 1 else 's'}")

    return (
        f"The user has categorized their recording sessions this year as: {' and '.join(parts)}.\n\n"
        "When classifying items in the Year Wrap:\n"
        '- Items from work sessions should be marked as "work"\n'
        '- Items from personal sessions should be marked as "personal"\n'
        '- Items that appear across both types or cannot be clearly attributed should be marked as "both"\n\n'
        "The monthly/weekly summaries you're analyzing aggregate content from these categorized sessions. "
        "Use the session categories as context to infer which domain each insight belongs to."
    )


class PeriodRollupEngine:
    """Build parent-period summaries from their children, regenerating only on changed input.

    Day, week, month and year rollups are plain bullet concatenations of their children and
    never call the summarization engine; only the Year Wrap does. Every operation is best
    effort: failures are logged and the method returns ``None`` instead of raising.
    """

    def __init__(
        self,
        *,
        store: TranscriptStore,
        engine: SummarizationEngine,
        guard: GenerationGuard,
        events: EventBus,
        session_generator: SessionGenerator,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._guard = guard
        self._events = events
        self._session_generator = session_generator
        self._settings = settings or get_settings()
        self._console = console or Console()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def update_daily_summary(self, moment: datetime, force_regenerate: bool = False) -> Optional[Summary]:
        return await self._rollup(PeriodType.DAY, moment, force_regenerate)

    async def update_weekly_summary(self, moment: datetime, force_regenerate: bool = False) -> Optional[Summary]:
        return await self._rollup(PeriodType.WEEK, moment, force_regenerate)

    async def update_monthly_summary(self, moment: datetime, force_regenerate: bool = False) -> Optional[Summary]:
        return await self._rollup(PeriodType.MONTH, moment, force_regenerate)

    async def update_yearly_summary(self, moment: datetime, force_regenerate: bool = False) -> Optional[Summary]:
        return await self._rollup(PeriodType.YEAR, moment, force_regenerate)

    async def wrap_up_year(self, moment: datetime, force_regenerate: bool = False) -> Optional[Summary]:
        """Generate the AI Year Wrap for the year containing ``moment``."""

        return await self._rollup(PeriodType.YEAR_WRAP, moment, force_regenerate)

    async def update_period_summaries(self, session_date: datetime) -> None:
        """Refresh the day, week, month and year containing ``session_date``, in that order."""

        await self.update_daily_summary(session_date)
        await self.update_weekly_summary(session_date)
        await self.update_monthly_summary(session_date)
        await self.update_yearly_summary(session_date)

    async def get_new_sessions_since_year_wrap(self, year_wrap: Summary, year: int) -> int:
        """Count sessions of ``year`` whose first chunk was created after the wrap was generated."""

        zone = self._settings.zone
        start, end = period_bounds(PeriodType.YEAR, datetime(year, 7, 1), zone)
        generated_at = localize(year_wrap.last_generated_at, zone)
        sessions = await self._store.fetch_sessions_in_range(start, end)
        new_count = sum(1 for session in sessions if localize(session.created_at, zone) > generated_at)
        self._console.log(f"{new_count} new sessions in {year} since the Year Wrap was generated")
        return new_count

    # ------------------------------------------------------------------ #
    # Rollup pipeline                                                    #
    # ------------------------------------------------------------------ #
    async def _rollup(self, level: PeriodType, moment: datetime, force_regenerate: bool) -> Optional[Summary]:
        start, end = period_bounds(level, moment, self._settings.zone)
        key = PeriodKey(level=level, start=start)

        async with self._guard.hold(key) as acquired:
            if not acquired:
                self._console.log(f"{key} already generating; skipping duplicate request")
                return None
            try:
                return await self._generate(level, start, end, force_regenerate)
            except Exception as exc:
                self._console.log(f"[red]Failed to update {level.display_name.lower()} summary {key}:[/red] {exc}")
                return None

    async def _generate(
        self, level: PeriodType, start: datetime, end: datetime, force_regenerate: bool
    ) -> Optional[Summary]:
        inputs = await self._gather(level, start, end)
        if not inputs.children:
            self._console.log(f"No child summaries for {level.display_name.lower()} starting {start.date()}")
            return None

        input_hash = compute_input_hash(inputs.lines)
        existing = await self._store.fetch_period_summary(level, start)
        if existing is not None and existing.input_hash == input_hash and not force_regenerate:
            self._console.log(f"{level.display_name} summary for {start.date()} unchanged; cache hit")
            return existing

        source_ids = source_ids_to_json(inputs.source_ids)
        if level is PeriodType.YEAR_WRAP:
            categories = await self._session_categories(start, end)
            wrap = await self._engine.generate_year_wrap_summary(
                start,
                end,
                inputs.children,
                category_context=build_category_context(categories),
            )
            saved = await self._store.upsert_period_summary(
                level,
                wrap.text,
                start,
                end,
                topics_json=wrap.topics_json,
                entities_json=wrap.entities_json,
                engine_tier=wrap.engine_tier or self._engine.engine_tier,
                source_ids=source_ids,
                input_hash=input_hash,
            )
        else:
            text = "\n".join(f"{BULLET} {line}" for line in inputs.lines)
            saved = await self._store.upsert_period_summary(
                level,
                text,
                start,
                end,
                engine_tier=ROLLUP_ENGINE_TIER,
                source_ids=source_ids,
                input_hash=input_hash,
            )

        self._console.log(
            f"Saved {level.display_name.lower()} summary for {start.date()} "
            f"({len(inputs.children)} children, engine: {saved.engine_tier})"
        )
        self._events.publish(
            SummaryEvent(
                kind=EventKind.PERIOD_SUMMARY_SAVED,
                period_type=level,
                period_start=start,
                summary_id=saved.id,
            )
        )
        return saved

    async def _gather(self, level: PeriodType, start: datetime, end: datetime) -> RollupInputs:
        if level is PeriodType.DAY:
            return await self._gather_sessions(start, end)

        primary, fallback = _CHILD_LEVELS[level]
        children = await self._store.fetch_summaries_in_range(primary, start, end)
        if not children and fallback is not None:
            children = await self._store.fetch_summaries_in_range(fallback, start, end)
        children = sorted(children, key=lambda summary: summary.period_start)
        return RollupInputs(children=children, lines=[child.text for child in children])

    async def _gather_sessions(self, start: datetime, end: datetime) -> RollupInputs:
        """Collect the day's session summaries, generating missing ones for finished sessions."""

        sessions = await self._store.fetch_sessions_in_range(start, end)
        if not sessions:
            return RollupInputs()

        pending = 0
        for session in sessions:
            if await self._store.fetch_summary_for_session(session.session_id) is not None:
                continue
            if not await self._store.is_session_transcription_complete(session.session_id):
                pending += 1
                continue
            self._console.log(f"Session {session.session_id} missing summary; generating")
            try:
                await self._session_generator(session.session_id)
            except Exception as exc:
                self._console.log(f"[yellow]Skipping session {session.session_id}:[/yellow] {exc}")

        if pending:
            self._console.log(f"[yellow]{pending} of {len(sessions)} sessions still transcribing[/yellow]")

        children = sorted(
            await self._store.fetch_summaries_in_range(PeriodType.SESSION, start, end),
            key=lambda summary: summary.period_start,
        )
        session_ids = [child.session_id for child in children if child.session_id is not None]
        metadata = await self._store.fetch_session_metadata_batch(session_ids) if session_ids else {}

        lines: List[str] = []
        for child in children:
            notes = self._notes_for(metadata.get(child.session_id) if child.session_id else None)
            lines.append(f"{child.text}\n  (Notes: {notes})" if notes else child.text)
        return RollupInputs(children=children, lines=lines)

    async def _session_categories(self, start: datetime, end: datetime) -> Dict[UUID, SessionCategory]:
        sessions = await self._store.fetch_sessions_in_range(start, end)
        if not sessions:
            return {}
        metadata = await self._store.fetch_session_metadata_batch([session.session_id for session in sessions])
        return {
            session_id: entry.category
            for session_id, entry in metadata.items()
            if entry.category is not None
        }

    @staticmethod
    def _notes_for(metadata: Optional[SessionMetadata]) -> Optional[str]:
        if metadata is None or not metadata.has_notes or metadata.notes is None:
            return None
        return metadata.notes.strip()


__all__ = ["PeriodRollupEngine", "RollupInputs", "SessionGenerator", "build_category_context"]
