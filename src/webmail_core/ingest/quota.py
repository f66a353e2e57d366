"""Per-source, per-calendar-day quota for anonymous ingestion."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date

import structlog

from webmail_core.exceptions import QuotaExceededError
from webmail_core.utils import Today, local_today

logger = structlog.get_logger()

DEFAULT_DAILY_LIMIT = 10


@dataclass
class _DailyCounter:
    day: date
    count: int = 0


class DailyQuota:
    """Counts accepted messages per source address for the current day.

    A counter whose day differs from today is stale and is replaced on the
    next access; there is no reset timer. The first acquire of a new day also
    drops every stale counter, so the map only holds today's sources.
    All reads and updates happen under one lock, so concurrent requests
    from the same source never lose an increment.
    """

    def __init__(self, limit: int = DEFAULT_DAILY_LIMIT, *, today: Today = local_today) -> None:
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        self.limit = limit
        self._today = today
        self._counters: dict[str, _DailyCounter] = {}
        self._day: date | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def _current(self, source: str) -> _DailyCounter:
        # Caller holds the lock.
        today = self._today()
        if today != self._day:
            stale = [s for s, c in self._counters.items() if c.day != today]
            for s in stale:
                del self._counters[s]
            if stale:
                logger.debug("quota_counters_pruned", removed=len(stale))
            self._day = today
        counter = self._counters.get(source)
        if counter is None or counter.day != today:
            counter = _DailyCounter(day=today)
            self._counters[source] = counter
        return counter

    def acquire(self, source: str) -> int:
        """Take one unit of today's quota for ``source``.

        Returns:
            The source's count for today, including this unit.

        Raises:
            QuotaExceededError: If the limit is already reached. The counter
                is left unchanged.
        """

        with self._lock:
            counter = self._current(source)
            if counter.count >= self.limit:
                raise QuotaExceededError(source, self.limit)
            counter.count += 1
            return counter.count

    def release(self, source: str) -> None:
        """Give back a unit taken today by a request that was not accepted."""

        with self._lock:
            counter = self._counters.get(source)
            if counter is not None and counter.day == self._today() and counter.count > 0:
                counter.count -= 1

    def used(self, source: str) -> int:
        with self._lock:
            counter = self._counters.get(source)
            if counter is None or counter.day != self._today():
                return 0
            return counter.count

    def remaining(self, source: str) -> int:
        return self.limit - self.used(source)
