"""Pydantic models representing stored summaries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, model_validator

from lifewrap.models.base import LifeWrapBaseModel, utcnow

ROLLUP_ENGINE_TIER = "rollup"


class PeriodType(str, Enum):
    """Granularity of a summary, from a single session up to the annual recap."""

    SESSION = "session"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    YEAR_WRAP = "year_wrap"

    @property
    def display_name(self) -> str:
        if self is PeriodType.YEAR_WRAP:
            return "Year Wrap"
        return self.value.title()


class Summary(LifeWrapBaseModel):
    """Domain model representing a row in the ``summaries`` table.

    Session summaries carry ``session_id`` and are replaced wholesale on regeneration. Aggregate
    summaries (day and above) have no ``session_id`` and are updated in place, keyed by
    ``(period_type, period_start)``. ``input_hash`` fingerprints the inputs the text was built
    from and ``source_ids`` records the children, both serialised as strings.
    """

    id: UUID = Field(default_factory=uuid4)
    period_type: PeriodType
    period_start: datetime
    period_end: datetime
    text: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    session_id: Optional[UUID] = None
    topics_json: Optional[str] = None
    entities_json: Optional[str] = None
    engine_tier: Optional[str] = None
    source_ids: Optional[str] = None
    input_hash: Optional[str] = None

    @model_validator(mode="after")
    def _check_session_link(self) -> "Summary":
        if self.period_type is PeriodType.SESSION and self.session_id is None:
            raise ValueError("Session summaries require a session_id.")
        return self

    @property
    def last_generated_at(self) -> datetime:
        """Return when the text was last (re)generated."""

        return self.updated_at or self.created_at


__all__ = ["PeriodType", "ROLLUP_ENGINE_TIER", "Summary"]
