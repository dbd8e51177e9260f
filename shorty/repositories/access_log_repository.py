"""Access log repository.

Persistence and SQL-side aggregation for the ``access_logs`` table.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel
from sqlalchemy import desc, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.types import utc_now
from shorty.models.access_log import AccessLog, AccessLogCreate
from shorty.repositories.base import BaseRepository, RepositoryError

logger = logging.getLogger(__name__)


class AccessLogFilters(BaseModel):
    """Criteria for querying access logs; every field is optional."""

    link_id: Optional[int] = None
    short_code: Optional[str] = None
    device_type: Optional[str] = None
    country: Optional[str] = None
    start: Optional[dt.datetime] = None
    end: Optional[dt.datetime] = None


def _day_bounds(day: dt.date) -> Tuple[dt.datetime, dt.datetime]:
    start = dt.datetime.combine(day, dt.time.min, tzinfo=dt.timezone.utc)
    return start, start + dt.timedelta(days=1)


class AccessLogRepository(BaseRepository[AccessLog, AccessLogCreate, AccessLogCreate]):
    """
    Repository for AccessLog rows.

    Rows are append-only: they are created by the access recorder and
    removed only by retention cleanup or when their link is deleted.
    """

    def __init__(self):
        super().__init__(AccessLog)

    async def create_access_log(
        self,
        db: AsyncSession,
        data: Union[AccessLogCreate, Dict[str, Any]]
    ) -> AccessLog:
        """Persist one access log row."""
        return await self.create(db, data)

    def _conditions(self, filters: Optional[AccessLogFilters]) -> List[Any]:
        if filters is None:
            return []
        conditions = []
        if filters.link_id is not None:
            conditions.append(AccessLog.link_id == filters.link_id)
        if filters.short_code:
            conditions.append(AccessLog.short_code == filters.short_code)
        if filters.device_type:
            conditions.append(AccessLog.device_type == filters.device_type)
        if filters.country:
            conditions.append(AccessLog.country == filters.country)
        if filters.start is not None:
            conditions.append(AccessLog.accessed_at >= filters.start)
        if filters.end is not None:
            conditions.append(AccessLog.accessed_at <= filters.end)
        return conditions

    async def query_access_logs(
        self,
        db: AsyncSession,
        filters: Optional[AccessLogFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> Tuple[List[AccessLog], int]:
        """
        Filter access logs, newest first.

        Both the filtering and the total count run in SQL.

        Args:
            db: Database session
            filters: Optional criteria
            limit: Page size, or None for every matching row
            offset: Rows to skip

        Returns:
            Tuple of (rows, total number of matching rows)
        """
        conditions = self._conditions(filters)
        try:
            query = select(AccessLog)
            if conditions:
                query = query.where(*conditions)
            query = query.order_by(desc(AccessLog.accessed_at), desc(AccessLog.id)).offset(offset)
            if limit is not None:
                query = query.limit(limit)

            result = await db.execute(query)
            rows = list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error querying access logs: {e}") from e

        total = await self.count(db, *conditions)
        return rows, total

    async def get_logs_for_day(self, db: AsyncSession, link_id: int, day: dt.date) -> List[AccessLog]:
        """Every log of one link on one calendar day, oldest first."""
        start, end = _day_bounds(day)
        try:
            query = (
                select(AccessLog)
                .where(
                    AccessLog.link_id == link_id,
                    AccessLog.accessed_at >= start,
                    AccessLog.accessed_at < end,
                )
                .order_by(AccessLog.accessed_at, AccessLog.id)
            )
            result = await db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error retrieving access logs for day: {e}") from e

    async def links_with_logs_on(self, db: AsyncSession, day: dt.date) -> List[Tuple[int, str]]:
        """(link_id, short_code) pairs that have at least one log on ``day``."""
        start, end = _day_bounds(day)
        try:
            query = (
                select(AccessLog.link_id, AccessLog.short_code)
                .where(AccessLog.accessed_at >= start, AccessLog.accessed_at < end)
                .group_by(AccessLog.link_id, AccessLog.short_code)
                .order_by(AccessLog.link_id)
            )
            result = await db.execute(query)
            return [(row[0], row[1]) for row in result.all()]
        except Exception as e:
            raise RepositoryError(f"Error listing links with logs: {e}") from e

    async def delete_stale_access_logs(
        self,
        db: AsyncSession,
        retention_days: int,
        now: Optional[dt.datetime] = None
    ) -> int:
        """
        Delete logs older than the retention window.

        Returns:
            Number of rows deleted
        """
        cutoff = (now or utc_now()) - dt.timedelta(days=retention_days)
        deleted = await self.bulk_delete(db, AccessLog.accessed_at < cutoff)
        logger.info(f"Deleted {deleted} access logs older than {cutoff.isoformat()}")
        return deleted

    async def count_since(
        self,
        db: AsyncSession,
        since: Optional[dt.datetime] = None,
        link_id: Optional[int] = None
    ) -> int:
        """Number of visits after ``since`` (all time when None)."""
        conditions = []
        if since is not None:
            conditions.append(AccessLog.accessed_at >= since)
        if link_id is not None:
            conditions.append(AccessLog.link_id == link_id)
        return await self.count(db, *conditions)

    async def count_recent_by_ip(
        self,
        db: AsyncSession,
        ip_address: str,
        since: dt.datetime,
        link_id: Optional[int] = None
    ) -> int:
        """Visits from one IP after ``since``, optionally for one link."""
        conditions = [AccessLog.ip_address == ip_address, AccessLog.accessed_at >= since]
        if link_id is not None:
            conditions.append(AccessLog.link_id == link_id)
        return await self.count(db, *conditions)

    async def count_unique_visitors(self, db: AsyncSession, link_id: Optional[int] = None) -> int:
        """Distinct IP addresses across all logs, or one link's logs."""
        try:
            query = select(func.count(distinct(AccessLog.ip_address)))
            if link_id is not None:
                query = query.where(AccessLog.link_id == link_id)
            result = await db.execute(query)
            return int(result.scalar_one())
        except Exception as e:
            raise RepositoryError(f"Error counting unique visitors: {e}") from e

    async def device_distribution(self, db: AsyncSession, link_id: Optional[int] = None) -> Dict[str, int]:
        """Visit counts keyed by device type."""
        try:
            query = select(AccessLog.device_type, func.count())
            if link_id is not None:
                query = query.where(AccessLog.link_id == link_id)
            query = query.group_by(AccessLog.device_type)
            result = await db.execute(query)
            distribution: Dict[str, int] = {}
            for device, count in result.all():
                key = device or "unknown"
                distribution[key] = distribution.get(key, 0) + count
            return distribution
        except Exception as e:
            raise RepositoryError(f"Error computing device distribution: {e}") from e

    async def top_countries(
        self,
        db: AsyncSession,
        limit: int = 10,
        link_id: Optional[int] = None
    ) -> List[Tuple[str, int]]:
        """Most frequent visitor countries, ignoring unresolved ones."""
        try:
            visits = func.count().label("visits")
            query = select(AccessLog.country, visits).where(AccessLog.country.is_not(None))
            if link_id is not None:
                query = query.where(AccessLog.link_id == link_id)
            query = query.group_by(AccessLog.country).order_by(desc(visits), AccessLog.country).limit(limit)
            result = await db.execute(query)
            return [(country, count) for country, count in result.all()]
        except Exception as e:
            raise RepositoryError(f"Error computing top countries: {e}") from e

    async def top_links_since(
        self,
        db: AsyncSession,
        since: Optional[dt.datetime],
        limit: int = 10
    ) -> List[Tuple[int, int]]:
        """(link_id, visits) pairs ranked by visits after ``since``."""
        try:
            visits = func.count().label("visits")
            query = select(AccessLog.link_id, visits)
            if since is not None:
                query = query.where(AccessLog.accessed_at >= since)
            query = query.group_by(AccessLog.link_id).order_by(desc(visits), AccessLog.link_id).limit(limit)
            result = await db.execute(query)
            return [(link_id, count) for link_id, count in result.all()]
        except Exception as e:
            raise RepositoryError(f"Error ranking links by visits: {e}") from e

    async def recent_logs(self, db: AsyncSession, link_id: int, limit: int = 10) -> List[AccessLog]:
        """The latest visits of one link."""
        rows, _ = await self.query_access_logs(db, AccessLogFilters(link_id=link_id), limit=limit)
        return rows
