import asyncio
from datetime import datetime, timezone

from lifewrap.models import PeriodType
from lifewrap.services.guard import GenerationGuard
from lifewrap.utils.periods import PeriodKey

DAY_KEY = PeriodKey(level=PeriodType.DAY, start=datetime(2024, 3, 6, tzinfo=timezone.utc))
WEEK_KEY = PeriodKey(level=PeriodType.WEEK, start=datetime(2024, 3, 4, tzinfo=timezone.utc))


def test_try_begin_rejects_a_second_claim_until_released():
    guard = GenerationGuard()
    assert guard.try_begin(DAY_KEY)
    assert not guard.try_begin(DAY_KEY)
    assert guard.try_begin(WEEK_KEY)

    guard.end(DAY_KEY)
    assert guard.try_begin(DAY_KEY)


def test_end_on_unclaimed_key_is_a_no_op():
    guard = GenerationGuard()
    guard.end(DAY_KEY)
    assert guard.active_keys == frozenset()


def test_hold_releases_on_error():
    guard = GenerationGuard()

    async def scenario():
        try:
            async with guard.hold(DAY_KEY) as acquired:
                assert acquired
                assert guard.is_active(DAY_KEY)
                raise RuntimeError("boom")
        except RuntimeError:
            pass

    asyncio.run(scenario())
    assert not guard.is_active(DAY_KEY)


def test_nested_hold_does_not_release_the_outer_claim():
    guard = GenerationGuard()

    async def scenario():
        async with guard.hold(DAY_KEY) as outer:
            async with guard.hold(DAY_KEY) as inner:
                assert outer and not inner
            assert guard.is_active(DAY_KEY)

    asyncio.run(scenario())
    assert not guard.is_active(DAY_KEY)
