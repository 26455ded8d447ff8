"""Tests for the daily analytics cache and its read-through helper."""

from datetime import datetime, timedelta, timezone

import pytest

from winqer.models.cache_models import CachePlatform, DailyAnalyticsCache
from winqer.services.analytics_cache import (
    get_cached_analytics,
    is_cache_valid,
    is_day_servable,
    read_through,
    upsert_analytics_cache,
)

# 2024-03-10 12:00 JST
NOW = datetime(2024, 3, 10, 3, 0, tzinfo=timezone.utc)


class TestFreshness:
    def test_ttl(self):
        assert is_cache_valid(NOW - timedelta(minutes=29), NOW) is True
        assert is_cache_valid(NOW - timedelta(minutes=31), NOW) is False

    def test_naive_timestamps_read_as_utc(self):
        naive = (NOW - timedelta(minutes=5)).replace(tzinfo=None)
        assert is_cache_valid(naive, NOW) is True

    def test_old_days_are_final(self):
        row = DailyAnalyticsCache(
            store_id="s",
            date="2024-03-01",
            platform=CachePlatform.META,
            updated_at=NOW - timedelta(days=5),
        )
        assert is_day_servable(row, now=NOW) is True

    def test_recent_days_need_fresh_rows(self):
        row = DailyAnalyticsCache(
            store_id="s",
            date="2024-03-09",
            platform=CachePlatform.META,
            updated_at=NOW - timedelta(hours=2),
        )
        assert is_day_servable(row, now=NOW) is False


class TestUpsert:
    def test_insert_then_overwrite(self, session):
        written = upsert_analytics_cache(
            session, "store-1", CachePlatform.GA4, [{"date": "2024-03-01", "data": {"count": 1}}]
        )
        assert written == 1
        upsert_analytics_cache(
            session, "store-1", CachePlatform.GA4, [{"date": "2024-03-01", "data": {"count": 5}}]
        )

        cached = get_cached_analytics(
            session, "store-1", "2024-03-01", "2024-03-31", CachePlatform.GA4
        )
        assert list(cached) == ["2024-03-01"]
        assert cached["2024-03-01"].metrics == {"count": 5}

    def test_platforms_are_separate(self, session):
        upsert_analytics_cache(
            session, "store-1", CachePlatform.GA4, [{"date": "2024-03-01", "data": {"count": 1}}]
        )
        assert get_cached_analytics(
            session, "store-1", "2024-03-01", "2024-03-01", CachePlatform.META
        ) == {}

    def test_empty_batch_writes_nothing(self, session):
        assert upsert_analytics_cache(session, "store-1", CachePlatform.META, []) == 0


class TestReadThrough:
    rows = [
        {"date": "2024-03-02", "spend": 20},
        {"date": "2024-03-01", "spend": 10},
    ]

    @pytest.mark.anyio
    async def test_miss_fetches_and_caches(self, session):
        calls = []

        async def fetch():
            calls.append(1)
            return list(self.rows)

        result = await read_through(
            session, "store-1", CachePlatform.META, "2024-03-01", "2024-03-02", fetch,
            scope="cmp-1", now=NOW,
        )
        assert [r["date"] for r in result] == ["2024-03-01", "2024-03-02"]
        assert len(calls) == 1

        again = await read_through(
            session, "store-1", CachePlatform.META, "2024-03-01", "2024-03-02", fetch,
            scope="cmp-1", now=NOW,
        )
        assert len(calls) == 1
        assert again == [{"date": "2024-03-01", "spend": 10}, {"date": "2024-03-02", "spend": 20}]

    @pytest.mark.anyio
    async def test_other_scope_is_a_miss(self, session):
        calls = []

        async def fetch():
            calls.append(1)
            return list(self.rows)

        await read_through(
            session, "store-1", CachePlatform.META, "2024-03-01", "2024-03-02", fetch,
            scope="cmp-1", now=NOW,
        )
        await read_through(
            session, "store-1", CachePlatform.META, "2024-03-01", "2024-03-02", fetch,
            scope="cmp-2", now=NOW,
        )
        assert len(calls) == 2

    @pytest.mark.anyio
    async def test_missing_day_is_a_miss(self, session):
        calls = []

        async def fetch():
            calls.append(1)
            return [{"date": "2024-03-01", "spend": 10}]

        for _ in range(2):
            await read_through(
                session, "store-1", CachePlatform.META, "2024-03-01", "2024-03-02", fetch,
                now=NOW,
            )
        assert len(calls) == 2
