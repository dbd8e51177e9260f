"""Daily rollups of access logs and retention cleanup.

This module contains the pure rollup computation and the Aggregator
service that persists it, plus the periodic retention pass.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.session import SessionScope, db_transaction
from shorty.db.types import utc_now
from shorty.models.access_log import AccessLog
from shorty.models.daily_stats import DailyStats, TopItem
from shorty.repositories.access_log_repository import AccessLogRepository
from shorty.repositories.daily_stats_repository import DailyStatsRepository
from shorty.repositories.settings_repository import SystemConfigRepository
from shorty.utils.urls import extract_domain
from shorty.utils.user_agent import DeviceType

logger = logging.getLogger(__name__)

TOP_N = 5
DIRECT_REFERER = "Direct"
UNKNOWN_REFERER = "Unknown"

DEFAULT_ANALYTICS_RETENTION_DAYS = 365
DEFAULT_DAILY_STATS_RETENTION_DAYS = 1095


def _top(counter: Counter, limit: int = TOP_N) -> List[TopItem]:
    # most_common is stable, so ties keep first-seen order
    return [TopItem(key=key, count=count) for key, count in counter.most_common(limit)]


def referer_bucket(referer: Optional[str]) -> str:
    """Referrer domain, ``Direct`` when absent, ``Unknown`` when unparseable."""
    if not referer or not referer.strip():
        return DIRECT_REFERER
    return extract_domain(referer) or UNKNOWN_REFERER


@dataclass
class DailyRollup:
    total_visits: int = 0
    unique_visitors: int = 0
    mobile_visits: int = 0
    desktop_visits: int = 0
    tablet_visits: int = 0
    bot_visits: int = 0
    top_countries: List[TopItem] = field(default_factory=list)
    top_cities: List[TopItem] = field(default_factory=list)
    top_referers: List[TopItem] = field(default_factory=list)

    def as_values(self) -> Dict[str, Any]:
        return {
            "total_visits": self.total_visits,
            "unique_visitors": self.unique_visitors,
            "mobile_visits": self.mobile_visits,
            "desktop_visits": self.desktop_visits,
            "tablet_visits": self.tablet_visits,
            "bot_visits": self.bot_visits,
            "top_countries": list(self.top_countries),
            "top_cities": list(self.top_cities),
            "top_referers": list(self.top_referers),
        }


def compute_daily_rollup(logs: Iterable[AccessLog]) -> DailyRollup:
    """
    Aggregate one day of access logs.

    Unique visitors are distinct IP addresses. Direct visits are counted
    but left out of the referrer ranking.
    """
    rollup = DailyRollup()
    ips = set()
    devices: Counter = Counter()
    countries: Counter = Counter()
    cities: Counter = Counter()
    referers: Counter = Counter()

    for log in logs:
        rollup.total_visits += 1
        if log.ip_address:
            ips.add(log.ip_address)
        devices[log.device_type or DeviceType.UNKNOWN.value] += 1
        if log.country:
            countries[log.country] += 1
        if log.city:
            cities[log.city] += 1
        bucket = referer_bucket(log.referer)
        if bucket != DIRECT_REFERER:
            referers[bucket] += 1

    rollup.unique_visitors = len(ips)
    rollup.mobile_visits = devices[DeviceType.MOBILE.value]
    rollup.desktop_visits = devices[DeviceType.DESKTOP.value]
    rollup.tablet_visits = devices[DeviceType.TABLET.value]
    rollup.bot_visits = devices[DeviceType.BOT.value]
    rollup.top_countries = _top(countries)
    rollup.top_cities = _top(cities)
    rollup.top_referers = _top(referers)
    return rollup


@dataclass
class CleanupReport:
    access_logs_deleted: int
    daily_stats_deleted: int
    links_aggregated: int
    aggregated_day: date
    expired_links_deleted: int = 0


class Aggregator:
    """
    Service maintaining one DailyStats row per link and day.

    Args:
        access_log_repository: Source of raw access logs
        daily_stats_repository: Store for rollups
        config_repository: Source of retention windows
        session_scope: Opens a committed session for background rollups
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        access_log_repository: AccessLogRepository,
        daily_stats_repository: DailyStatsRepository,
        config_repository: SystemConfigRepository,
        session_scope: Optional[SessionScope] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.access_log_repository = access_log_repository
        self.daily_stats_repository = daily_stats_repository
        self.config_repository = config_repository
        self.session_scope = session_scope
        self.clock = clock

    async def rollup_day(self, db: AsyncSession, link_id: int, short_code: str, day: date) -> DailyStats:
        """Recompute and store the rollup of one link for one day."""
        logs = await self.access_log_repository.get_logs_for_day(db, link_id, day)
        rollup = compute_daily_rollup(logs)
        stats = await self.daily_stats_repository.upsert_daily_stats(
            db, link_id, short_code, day, rollup.as_values()
        )
        logger.debug(f"Rolled up {rollup.total_visits} visits for link {link_id} on {day}")
        return stats

    async def rollup_in_background(self, link_id: int, short_code: str, day: date) -> None:
        """Rollup in its own session; errors are logged, never raised."""
        if self.session_scope is None:
            logger.warning("No session scope configured, skipping background rollup")
            return
        try:
            async with self.session_scope() as db:
                await self.rollup_day(db, link_id, short_code, day)
        except Exception as e:
            logger.error(f"Background rollup failed for link {link_id} on {day}: {e}", exc_info=True)

    async def aggregate_day(self, db: AsyncSession, day: date) -> int:
        """
        Roll up every link that has logs on ``day``.

        Returns:
            Number of links aggregated
        """
        links = await self.access_log_repository.links_with_logs_on(db, day)
        for link_id, short_code in links:
            await self.rollup_day(db, link_id, short_code, day)
        logger.info(f"Aggregated {len(links)} links for {day}")
        return len(links)

    @db_transaction(db_param_name="db")
    async def run_cleanup(self, db: AsyncSession, today: Optional[date] = None) -> CleanupReport:
        """
        Apply retention windows, then aggregate yesterday.

        Retention comes from SystemConfig (``analytics_retention_days``,
        ``daily_stats_retention_days``), with 365 and 1095 days as defaults.
        """
        now = self.clock()
        today = today or now.date()

        log_retention = await self.config_repository.get_int(
            db, "analytics_retention_days", DEFAULT_ANALYTICS_RETENTION_DAYS
        )
        stats_retention = await self.config_repository.get_int(
            db, "daily_stats_retention_days", DEFAULT_DAILY_STATS_RETENTION_DAYS
        )

        reference = datetime.combine(today, now.timetz())
        logs_deleted = await self.access_log_repository.delete_stale_access_logs(db, log_retention, now=reference)
        stats_deleted = await self.daily_stats_repository.delete_stale_daily_stats(db, stats_retention, today=today)

        yesterday = today - timedelta(days=1)
        aggregated = await self.aggregate_day(db, yesterday)

        report = CleanupReport(
            access_logs_deleted=logs_deleted,
            daily_stats_deleted=stats_deleted,
            links_aggregated=aggregated,
            aggregated_day=yesterday,
        )
        logger.info(f"Analytics cleanup finished: {report}")
        return report
