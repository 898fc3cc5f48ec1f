from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from lifewrap.models import PeriodType
from lifewrap.utils.periods import PeriodKey, period_bounds, period_key

UTC = ZoneInfo("UTC")


def test_day_bounds_run_midnight_to_midnight():
    start, end = period_bounds(PeriodType.DAY, datetime(2024, 3, 6, 15, 30, tzinfo=timezone.utc), UTC)
    assert start == datetime(2024, 3, 6, tzinfo=UTC)
    assert end == datetime(2024, 3, 7, tzinfo=UTC)


def test_week_starts_on_monday():
    sunday = datetime(2024, 3, 10, 23, 59, tzinfo=timezone.utc)
    start, end = period_bounds(PeriodType.WEEK, sunday, UTC)
    assert start == datetime(2024, 3, 4, tzinfo=UTC)
    assert end == datetime(2024, 3, 11, tzinfo=UTC)
    assert start.weekday() == 0


def test_month_rolls_over_december():
    start, end = period_bounds(PeriodType.MONTH, datetime(2023, 12, 31, 12, tzinfo=timezone.utc), UTC)
    assert start == datetime(2023, 12, 1, tzinfo=UTC)
    assert end == datetime(2024, 1, 1, tzinfo=UTC)


def test_year_wrap_shares_year_bounds():
    moment = datetime(2024, 8, 15, tzinfo=timezone.utc)
    assert period_bounds(PeriodType.YEAR_WRAP, moment, UTC) == period_bounds(PeriodType.YEAR, moment, UTC)
    start, end = period_bounds(PeriodType.YEAR, moment, UTC)
    assert (start, end) == (datetime(2024, 1, 1, tzinfo=UTC), datetime(2025, 1, 1, tzinfo=UTC))


def test_session_level_has_no_calendar_bounds():
    with pytest.raises(ValueError):
        period_bounds(PeriodType.SESSION, datetime(2024, 1, 1, tzinfo=timezone.utc), UTC)


def test_bounds_follow_local_calendar():
    new_york = ZoneInfo("America/New_York")
    # 02:00 UTC on the 5th is still the evening of the 4th in New York.
    start, _ = period_bounds(PeriodType.DAY, datetime(2024, 3, 5, 2, tzinfo=timezone.utc), new_york)
    assert start == datetime(2024, 3, 4, tzinfo=new_york)


def test_dst_day_is_23_hours_long():
    new_york = ZoneInfo("America/New_York")
    start, end = period_bounds(PeriodType.DAY, datetime(2024, 3, 10, 12, tzinfo=new_york), new_york)
    assert end.timestamp() - start.timestamp() == 23 * 3600


def test_naive_moments_are_treated_as_local():
    tokyo = ZoneInfo("Asia/Tokyo")
    start, _ = period_bounds(PeriodType.DAY, datetime(2024, 3, 6, 1, 0), tokyo)
    assert start == datetime(2024, 3, 6, tzinfo=tokyo)


def test_period_key_renders_level_and_epoch():
    key = period_key(PeriodType.DAY, datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc), UTC)
    assert str(key) == "day-1699920000"
    assert key == PeriodKey(level=PeriodType.DAY, start=datetime(2023, 11, 14, tzinfo=UTC))


def test_period_keys_differ_across_levels_with_same_start():
    monday = datetime(2024, 1, 1, tzinfo=timezone.utc)
    keys = {period_key(level, monday, UTC) for level in (PeriodType.DAY, PeriodType.WEEK, PeriodType.MONTH)}
    assert len(keys) == 3
