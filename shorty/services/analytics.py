"""Analytics queries for the link shortener.

This module contains the AnalyticsService class, the read side of the
analytics data: dashboard overview, per-link detail, rankings, trends,
access-log search and export, and the per-IP visit rate check.
"""

import csv
import io
import json
import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.types import utc_now
from shorty.models.access_log import AccessLog
from shorty.models.link import Link
from shorty.repositories.access_log_repository import AccessLogFilters, AccessLogRepository
from shorty.repositories.daily_stats_repository import DailyStatsRepository, load_top_items
from shorty.repositories.link_repository import LinkRepository
from shorty.repositories.settings_repository import LinkSettingsRepository, SystemConfigRepository
from shorty.services.exceptions import InvalidInputError, InvalidPaginationError, LinkNotFoundError

logger = logging.getLogger(__name__)

PERIODS = ("day", "week", "month", "all")
EXPORT_FORMATS = ("csv", "json")
EXPORT_COLUMNS = [
    "id",
    "link_id",
    "short_code",
    "accessed_at",
    "ip_address",
    "user_agent",
    "referer",
    "country",
    "city",
    "device_type",
    "browser",
    "os",
    "response_time_ms",
]
MAX_EXPORT_ROWS = 10000
MAX_LOG_PAGE_SIZE = 100
MAX_TREND_DAYS = 365
DEFAULT_MAX_VISITS_PER_MINUTE = 60
RATE_WINDOW = timedelta(minutes=1)


@dataclass
class AccessLogPage:
    items: List[AccessLog]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass
class ExportResult:
    content: str
    media_type: str
    filename: str
    rows: int


@dataclass
class RateLimitStatus:
    ip_address: str
    link_id: Optional[int]
    count: int
    limit: int
    window_seconds: int
    reset_at: datetime

    @property
    def allowed(self) -> bool:
        return self.count < self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


def serialize_access_log(log: AccessLog) -> Dict[str, Any]:
    row = {column: getattr(log, column) for column in EXPORT_COLUMNS}
    if row["accessed_at"] is not None:
        row["accessed_at"] = row["accessed_at"].isoformat()
    return row


def _link_summary(link: Link, visits: Optional[int] = None) -> Dict[str, Any]:
    return {
        "id": link.id,
        "short_code": link.short_code,
        "original_url": link.original_url,
        "access_count": link.access_count,
        "visits": link.access_count if visits is None else visits,
        "created_at": link.created_at,
    }


class AnalyticsService:
    """
    Service answering analytics queries.

    Args:
        link_repository: Store for links
        access_log_repository: Store for raw visits
        daily_stats_repository: Store for daily rollups
        settings_repository: Store for per-link settings
        config_repository: Source of the per-minute visit ceiling
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        link_repository: LinkRepository,
        access_log_repository: AccessLogRepository,
        daily_stats_repository: DailyStatsRepository,
        settings_repository: LinkSettingsRepository,
        config_repository: SystemConfigRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.link_repository = link_repository
        self.access_log_repository = access_log_repository
        self.daily_stats_repository = daily_stats_repository
        self.settings_repository = settings_repository
        self.config_repository = config_repository
        self.clock = clock

    def _period_start(self, period: str) -> Optional[datetime]:
        now = self.clock()
        if period == "day":
            return now.replace(hour=0, minute=0, second=0, microsecond=0)
        if period == "week":
            return now - timedelta(days=7)
        if period == "month":
            return now - timedelta(days=30)
        return None

    async def _visit_windows(self, db: AsyncSession, link_id: Optional[int] = None) -> Dict[str, int]:
        return {
            f"visits_{name}": await self.access_log_repository.count_since(
                db, self._period_start(period), link_id=link_id
            )
            for name, period in (("today", "day"), ("this_week", "week"), ("this_month", "month"))
        }

    async def get_overview(self, db: AsyncSession) -> Dict[str, Any]:
        """Dashboard totals, distributions and a 30-day trend."""
        top_links = await self.link_repository.get_top_links(db, limit=10)
        top_countries = await self.access_log_repository.top_countries(db, limit=10)

        overview = {
            "total_links": await self.link_repository.count(db),
            "total_visits": await self.link_repository.total_access_count(db),
            "unique_visitors": await self.access_log_repository.count_unique_visitors(db),
            "device_distribution": await self.access_log_repository.device_distribution(db),
            "top_countries": [{"key": country, "count": count} for country, count in top_countries],
            "top_links": [_link_summary(link) for link in top_links],
            "trend": await self.get_traffic_trend(db, days=30),
        }
        overview.update(await self._visit_windows(db))
        return overview

    async def get_link_detail(self, db: AsyncSession, link_id: int) -> Dict[str, Any]:
        """
        Everything known about one link's traffic.

        Raises:
            LinkNotFoundError: If the link does not exist
        """
        link = await self.link_repository.get_by_id(db, link_id)
        if link is None:
            raise LinkNotFoundError(f"Link with id {link_id} not found")

        settings_row = await self.settings_repository.get_by_link_id(db, link.id)
        rollups = await self.daily_stats_repository.query_daily_stats(db, link_id=link.id)

        countries: Counter = Counter()
        referers: Counter = Counter()
        for stats in rollups:
            for item in load_top_items(stats.top_countries):
                countries[item.key] += item.count
            for item in load_top_items(stats.top_referers):
                referers[item.key] += item.count

        detail = {
            "link": link,
            "settings": settings_row,
            "is_expired": link.is_expired(self.clock()),
            "total_visits": link.access_count,
            "unique_visitors": await self.access_log_repository.count_unique_visitors(db, link_id=link.id),
            "device_distribution": await self.access_log_repository.device_distribution(db, link_id=link.id),
            "top_countries": [{"key": k, "count": c} for k, c in countries.most_common(10)],
            "top_referers": [{"key": k, "count": c} for k, c in referers.most_common(10)],
            "recent_visits": await self.access_log_repository.recent_logs(db, link.id, limit=10),
        }
        detail.update(await self._visit_windows(db, link_id=link.id))
        return detail

    async def get_link_detail_by_code(self, db: AsyncSession, short_code: str) -> Dict[str, Any]:
        link = await self.link_repository.get_by_short_code(db, short_code)
        if link is None:
            raise LinkNotFoundError(f"Link with code '{short_code}' not found")
        return await self.get_link_detail(db, link.id)

    async def get_top_links(self, db: AsyncSession, period: str = "all", limit: int = 10) -> List[Dict[str, Any]]:
        """
        Rank links by visits within a period.

        ``all`` ranks by the lifetime counter; the other periods count
        access logs.

        Raises:
            InvalidInputError: On an unknown period or a limit outside 1..100
        """
        if period not in PERIODS:
            raise InvalidInputError("Invalid period", [f"period must be one of {', '.join(PERIODS)}"])
        if not 1 <= limit <= 100:
            raise InvalidInputError("Invalid limit", ["limit must be between 1 and 100"])

        if period == "all":
            return [_link_summary(link) for link in await self.link_repository.get_top_links(db, limit=limit)]

        ranked = await self.access_log_repository.top_links_since(db, self._period_start(period), limit=limit)
        links = await self.link_repository.get_by_ids(db, [link_id for link_id, _ in ranked])
        return [
            _link_summary(links[link_id], visits=visits)
            for link_id, visits in ranked
            if link_id in links
        ]

    async def get_traffic_trend(
        self,
        db: AsyncSession,
        link_id: Optional[int] = None,
        days: int = 30
    ) -> List[Dict[str, Any]]:
        """
        Daily visits for the last ``days`` days, oldest first.

        Days without a rollup are reported with zero visits.
        """
        if not 1 <= days <= MAX_TREND_DAYS:
            raise InvalidInputError("Invalid days", [f"days must be between 1 and {MAX_TREND_DAYS}"])

        end = self.clock().date()
        start = end - timedelta(days=days - 1)
        totals = await self.daily_stats_repository.daily_totals(db, start, end, link_id=link_id)

        trend = []
        for offset in range(days):
            day: date = start + timedelta(days=offset)
            visits, unique = totals.get(day, (0, 0))
            trend.append({"date": day, "visits": visits, "unique_visitors": unique})
        return trend

    async def query_access_logs(
        self,
        db: AsyncSession,
        filters: Optional[AccessLogFilters] = None,
        page: int = 1,
        limit: int = 50
    ) -> AccessLogPage:
        """
        Search access logs, newest first.

        Raises:
            InvalidPaginationError: If page < 1 or limit is outside 1..100
        """
        errors = []
        if page < 1:
            errors.append("page must be at least 1")
        if not 1 <= limit <= MAX_LOG_PAGE_SIZE:
            errors.append(f"limit must be between 1 and {MAX_LOG_PAGE_SIZE}")
        if errors:
            raise InvalidPaginationError("Invalid pagination", errors)

        rows, total = await self.access_log_repository.query_access_logs(
            db, filters, limit=limit, offset=(page - 1) * limit
        )
        return AccessLogPage(items=rows, total=total, page=page, limit=limit)

    async def export_access_logs(
        self,
        db: AsyncSession,
        filters: Optional[AccessLogFilters] = None,
        fmt: str = "csv"
    ) -> ExportResult:
        """
        Export matching access logs as CSV or JSON.

        Raises:
            InvalidInputError: On an unsupported format
        """
        if fmt not in EXPORT_FORMATS:
            raise InvalidInputError("Invalid export format", [f"format must be one of {', '.join(EXPORT_FORMATS)}"])

        rows, total = await self.access_log_repository.query_access_logs(db, filters, limit=MAX_EXPORT_ROWS)
        if total > len(rows):
            logger.warning(f"Export truncated to {len(rows)} of {total} access logs")
        records = [serialize_access_log(row) for row in rows]
        stamp = self.clock().strftime("%Y%m%d%H%M%S")

        if fmt == "json":
            return ExportResult(
                content=json.dumps(records, ensure_ascii=False),
                media_type="application/json",
                filename=f"access_logs_{stamp}.json",
                rows=len(records),
            )

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(records)
        return ExportResult(
            content=buffer.getvalue(),
            media_type="text/csv",
            filename=f"access_logs_{stamp}.csv",
            rows=len(records),
        )

    async def check_rate_limit(
        self,
        db: AsyncSession,
        ip_address: str,
        link_id: Optional[int] = None,
        limit: Optional[int] = None
    ) -> RateLimitStatus:
        """
        Count visits from one IP within the last minute.

        The ceiling defaults to the ``max_visits_per_minute`` config entry.
        """
        if limit is None:
            limit = await self.config_repository.get_int(
                db, "max_visits_per_minute", DEFAULT_MAX_VISITS_PER_MINUTE
            )
        now = self.clock()
        count = await self.access_log_repository.count_recent_by_ip(
            db, ip_address, now - RATE_WINDOW, link_id=link_id
        )
        return RateLimitStatus(
            ip_address=ip_address,
            link_id=link_id,
            count=count,
            limit=limit,
            window_seconds=int(RATE_WINDOW.total_seconds()),
            reset_at=now + RATE_WINDOW,
        )
