"""Tests for the daily stats repository."""

from datetime import date

import pytest

from shorty.models.daily_stats import TopItem
from tests.utils import create_test_link

DAY = date(2024, 3, 14)


def _values(visits: int, **extra):
    values = {
        "total_visits": visits,
        "unique_visitors": visits,
        "top_countries": [TopItem(key="Germany", count=visits)],
        "top_cities": [],
        "top_referers": [],
    }
    values.update(extra)
    return values


@pytest.mark.repository
class TestDailyStatsRepository:
    """Test suite for daily rollup storage."""

    @pytest.mark.asyncio
    async def test_upsert_creates_then_overwrites(self, test_db, daily_stats_repository):
        link = await create_test_link(test_db)

        created = await daily_stats_repository.upsert_daily_stats(test_db, link.id, link.short_code, DAY, _values(2))
        await test_db.commit()
        updated = await daily_stats_repository.upsert_daily_stats(test_db, link.id, link.short_code, DAY, _values(5))
        await test_db.commit()

        assert updated.id == created.id
        assert updated.total_visits == 5
        assert updated.top_countries == [{"key": "Germany", "count": 5}]
        assert await daily_stats_repository.count(test_db) == 1

    @pytest.mark.asyncio
    async def test_query_and_totals(self, test_db, daily_stats_repository):
        first = await create_test_link(test_db)
        second = await create_test_link(test_db)
        await daily_stats_repository.upsert_daily_stats(test_db, first.id, first.short_code, DAY, _values(3))
        await daily_stats_repository.upsert_daily_stats(test_db, second.id, second.short_code, DAY, _values(4))
        await daily_stats_repository.upsert_daily_stats(
            test_db, first.id, first.short_code, date(2024, 3, 10), _values(1)
        )
        await test_db.commit()

        rows = await daily_stats_repository.query_daily_stats(test_db, link_id=first.id)
        assert [row.date for row in rows] == [date(2024, 3, 10), DAY]

        rows = await daily_stats_repository.query_daily_stats(test_db, start=date(2024, 3, 11))
        assert len(rows) == 2

        totals = await daily_stats_repository.daily_totals(test_db, date(2024, 3, 1), date(2024, 3, 31))
        assert totals == {DAY: (7, 7), date(2024, 3, 10): (1, 1)}

        totals = await daily_stats_repository.daily_totals(test_db, DAY, DAY, link_id=second.id)
        assert totals == {DAY: (4, 4)}

    @pytest.mark.asyncio
    async def test_delete_stale_daily_stats(self, test_db, daily_stats_repository):
        link = await create_test_link(test_db)
        await daily_stats_repository.upsert_daily_stats(test_db, link.id, link.short_code, date(2020, 1, 1), _values(1))
        await daily_stats_repository.upsert_daily_stats(test_db, link.id, link.short_code, DAY, _values(1))
        await test_db.commit()

        deleted = await daily_stats_repository.delete_stale_daily_stats(test_db, 1095, today=date(2024, 3, 15))
        await test_db.commit()

        assert deleted == 1
        remaining = await daily_stats_repository.query_daily_stats(test_db)
        assert [row.date for row in remaining] == [DAY]
