"""Unit tests for the per-source daily quota."""

from __future__ import annotations

import threading
from datetime import date, timedelta

import pytest

from webmail_core.exceptions import QuotaExceededError
from webmail_core.ingest import DailyQuota


class FakeToday:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture
def today() -> FakeToday:
    return FakeToday(date(2025, 3, 1))


class TestDailyQuota:
    """Test suite for DailyQuota."""

    def test_limit_is_enforced_per_source(self, today: FakeToday) -> None:
        quota = DailyQuota(10, today=today)

        assert [quota.acquire("10.0.0.1") for _ in range(10)] == list(range(1, 11))
        with pytest.raises(QuotaExceededError) as exc_info:
            quota.acquire("10.0.0.1")

        assert exc_info.value.limit == 10
        assert quota.used("10.0.0.1") == 10
        assert quota.acquire("10.0.0.2") == 1

    def test_new_day_resets_counter(self, today: FakeToday) -> None:
        quota = DailyQuota(2, today=today)
        quota.acquire("10.0.0.1")
        quota.acquire("10.0.0.1")

        today.day += timedelta(days=1)

        assert quota.used("10.0.0.1") == 0
        assert quota.acquire("10.0.0.1") == 1

    def test_release_gives_back_a_unit(self, today: FakeToday) -> None:
        quota = DailyQuota(3, today=today)
        quota.acquire("10.0.0.1")

        quota.release("10.0.0.1")
        quota.release("10.0.0.1")
        quota.release("never-seen")

        assert quota.used("10.0.0.1") == 0
        assert quota.remaining("10.0.0.1") == 3

    def test_release_ignores_yesterdays_counter(self, today: FakeToday) -> None:
        quota = DailyQuota(3, today=today)
        quota.acquire("10.0.0.1")
        today.day += timedelta(days=1)

        quota.release("10.0.0.1")

        assert quota.used("10.0.0.1") == 0

    def test_new_day_drops_stale_sources(self, today: FakeToday) -> None:
        quota = DailyQuota(3, today=today)
        for n in range(100):
            quota.acquire(f"198.51.100.{n}")
        assert len(quota) == 100

        today.day += timedelta(days=1)
        quota.acquire("10.0.0.1")

        assert len(quota) == 1
        assert quota.used("198.51.100.0") == 0

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            DailyQuota(0)

    def test_concurrent_acquires_never_exceed_limit(self, today: FakeToday) -> None:
        quota = DailyQuota(50, today=today)
        accepted: list[int] = []
        rejected: list[int] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            for _ in range(20):
                try:
                    accepted.append(quota.acquire("10.0.0.1"))
                except QuotaExceededError:
                    rejected.append(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(accepted) == list(range(1, 51))
        assert len(rejected) == 160 - 50
        assert quota.used("10.0.0.1") == 50
