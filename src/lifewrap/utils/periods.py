"""Calendar period boundaries and the structured keys used to guard their generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Tuple

from lifewrap.models.summary import PeriodType


@dataclass(frozen=True, slots=True)
class PeriodKey:
    """Identity of one period instance at one level, e.g. the day starting 2024-03-04."""

    level: PeriodType
    start: datetime

    def __str__(self) -> str:
        return f"{self.level.value}-{int(self.start.timestamp())}"


def localize(moment: datetime, zone: tzinfo) -> datetime:
    """Express ``moment`` in ``zone``; naive datetimes are assumed to already be local."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


def _midnight(day: date, zone: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=zone)


def period_bounds(level: PeriodType, moment: datetime, zone: tzinfo) -> Tuple[datetime, datetime]:
    """Return the half-open ``[start, end)`` range of the ``level`` period containing ``moment``.

    Days run midnight to midnight, weeks Monday to Monday, months and years follow the calendar.
    The year wrap shares the year's boundaries. Boundaries are computed on local calendar dates
    so a day spanning a DST change is 23 or 25 hours long.
    """

    local_day = localize(moment, zone).date()

    if level is PeriodType.DAY:
        start_day = local_day
        end_day = start_day + timedelta(days=1)
    elif level is PeriodType.WEEK:
        start_day = local_day - timedelta(days=local_day.weekday())
        end_day = start_day + timedelta(days=7)
    elif level is PeriodType.MONTH:
        start_day = local_day.replace(day=1)
        if start_day.month == 12:
            end_day = date(start_day.year + 1, 1, 1)
        else:
            end_day = date(start_day.year, start_day.month + 1, 1)
    elif level in (PeriodType.YEAR, PeriodType.YEAR_WRAP):
        start_day = date(local_day.year, 1, 1)
        end_day = date(local_day.year + 1, 1, 1)
    else:
        raise ValueError(f"Period boundaries are undefined for {level.value!r} summaries.")

    return _midnight(start_day, zone), _midnight(end_day, zone)


def period_key(level: PeriodType, moment: datetime, zone: tzinfo) -> PeriodKey:
    """Return the :class:`PeriodKey` of the ``level`` period containing ``moment``."""

    start, _ = period_bounds(level, moment, zone)
    return PeriodKey(level=level, start=start)


__all__ = ["PeriodKey", "localize", "period_bounds", "period_key"]
