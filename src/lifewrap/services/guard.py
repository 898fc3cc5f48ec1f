"""In-memory registry preventing duplicate generation of the same period summary."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, FrozenSet, Set

from lifewrap.utils.periods import PeriodKey


class GenerationGuard:
    """Track which period keys are currently being generated.

    The guard is process-local and forgets everything on restart; an interrupted rollup is
    simply redone, which the input-hash check makes safe. All calls happen on the event loop
    thread, so membership checks and updates are atomic with respect to other coroutines.
    """

    def __init__(self) -> None:
        self._in_progress: Set[PeriodKey] = set()

    def try_begin(self, key: PeriodKey) -> bool:
        """Claim ``key``; ``False`` means another generation for it is already running."""

        if key in self._in_progress:
            return False
        self._in_progress.add(key)
        return True

    def end(self, key: PeriodKey) -> None:
        """Release ``key``. Releasing an unclaimed key is a no-op."""

        self._in_progress.discard(key)

    def is_active(self, key: PeriodKey) -> bool:
        return key in self._in_progress

    @property
    def active_keys(self) -> FrozenSet[PeriodKey]:
        return frozenset(self._in_progress)

    @asynccontextmanager
    async def hold(self, key: PeriodKey) -> AsyncIterator[bool]:
        """Claim ``key`` for the duration of the block, yielding whether the claim succeeded.

        The key is released on exit only when this block acquired it.
        """

        acquired = self.try_begin(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.end(key)


__all__ = ["GenerationGuard"]
