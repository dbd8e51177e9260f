"""Daily stats repository.

Top-N lists cross this boundary as ``TopItem`` objects and are stored as
plain JSON; the conversion happens only here.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.types import utc_now
from shorty.models.daily_stats import DailyStats, TopItem
from shorty.repositories.base import BaseRepository, DuplicateEntityError, RepositoryError

logger = logging.getLogger(__name__)

TOP_FIELDS = ("top_countries", "top_cities", "top_referers")


def dump_top_items(items: List[TopItem]) -> List[Dict[str, Any]]:
    return [item.model_dump() for item in items]


def load_top_items(raw: Optional[List[Dict[str, Any]]]) -> List[TopItem]:
    return [TopItem.model_validate(entry) for entry in (raw or [])]


def _to_columns(values: Dict[str, Any]) -> Dict[str, Any]:
    columns = dict(values)
    for field in TOP_FIELDS:
        if field in columns:
            columns[field] = dump_top_items(columns[field])
    return columns


class DailyStatsRepository(BaseRepository[DailyStats, DailyStats, DailyStats]):
    """Repository for per-link daily rollups, unique on (link_id, date)."""

    def __init__(self):
        super().__init__(DailyStats)

    async def get_for_day(self, db: AsyncSession, link_id: int, day: dt.date) -> Optional[DailyStats]:
        try:
            query = select(DailyStats).where(DailyStats.link_id == link_id, DailyStats.date == day)
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error retrieving daily stats: {e}") from e

    async def upsert_daily_stats(
        self,
        db: AsyncSession,
        link_id: int,
        short_code: str,
        day: dt.date,
        values: Dict[str, Any]
    ) -> DailyStats:
        """
        Create or overwrite the rollup row of one link for one day.

        ``values`` holds the count fields and the ``top_*`` lists as
        ``TopItem`` objects. When a concurrent writer inserts the row first,
        the insert is retried as an update.

        Returns:
            The stored DailyStats row
        """
        columns = _to_columns(values)

        existing = await self.get_for_day(db, link_id, day)
        if existing is None:
            try:
                return await self.create(
                    db,
                    {"link_id": link_id, "short_code": short_code, "date": day, **columns},
                )
            except DuplicateEntityError:
                logger.info(f"Daily stats for link {link_id} on {day} created concurrently, updating")
                existing = await self.get_for_day(db, link_id, day)
                if existing is None:
                    raise

        try:
            for key, value in columns.items():
                setattr(existing, key, value)
            existing.updated_at = utc_now()
            await db.flush()
            await db.refresh(existing)
            return existing
        except Exception as e:
            raise RepositoryError(f"Error updating daily stats: {e}") from e

    async def query_daily_stats(
        self,
        db: AsyncSession,
        link_id: Optional[int] = None,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None
    ) -> List[DailyStats]:
        """Rollup rows ordered by date, filtered by link and inclusive date range."""
        try:
            query = select(DailyStats)
            if link_id is not None:
                query = query.where(DailyStats.link_id == link_id)
            if start is not None:
                query = query.where(DailyStats.date >= start)
            if end is not None:
                query = query.where(DailyStats.date <= end)
            query = query.order_by(DailyStats.date, DailyStats.link_id)
            result = await db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error querying daily stats: {e}") from e

    async def daily_totals(
        self,
        db: AsyncSession,
        start: dt.date,
        end: dt.date,
        link_id: Optional[int] = None
    ) -> Dict[dt.date, Tuple[int, int]]:
        """
        Visits and unique visitors per day, summed across links.

        Returns:
            Mapping of date to (total_visits, unique_visitors)
        """
        try:
            query = select(
                DailyStats.date,
                func.sum(DailyStats.total_visits),
                func.sum(DailyStats.unique_visitors),
            ).where(DailyStats.date >= start, DailyStats.date <= end)
            if link_id is not None:
                query = query.where(DailyStats.link_id == link_id)
            query = query.group_by(DailyStats.date)
            result = await db.execute(query)
            return {day: (int(visits or 0), int(unique or 0)) for day, visits, unique in result.all()}
        except Exception as e:
            raise RepositoryError(f"Error summing daily stats: {e}") from e

    async def delete_stale_daily_stats(
        self,
        db: AsyncSession,
        retention_days: int,
        today: Optional[dt.date] = None
    ) -> int:
        """
        Delete rollups older than the retention window.

        Returns:
            Number of rows deleted
        """
        cutoff = (today or utc_now().date()) - dt.timedelta(days=retention_days)
        deleted = await self.bulk_delete(db, DailyStats.date < cutoff)
        logger.info(f"Deleted {deleted} daily stats rows older than {cutoff.isoformat()}")
        return deleted
