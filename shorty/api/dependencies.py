"""API dependencies for FastAPI.

This module provides dependency injection functions for FastAPI endpoints
to access repositories, services and the session scope used by work that
outlives the request.
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends

from shorty.core.config import settings
from shorty.db.session import SessionManager, SessionScope
from shorty.db.types import utc_now
from shorty.repositories import (
    AccessLogRepository,
    DailyStatsRepository,
    LinkRepository,
    LinkSettingsRepository,
    SystemConfigRepository,
)
from shorty.services.access import AccessRecorder
from shorty.services.aggregation import Aggregator
from shorty.services.analytics import AnalyticsService
from shorty.services.geo import GeoLocator
from shorty.services.links import LinkService
from shorty.services.system_config import SystemConfigService


def get_clock() -> Callable[[], datetime]:
    """Current-time source shared by the services."""
    return utc_now


def get_session_scope() -> SessionScope:
    """Opens committed sessions for background tasks."""
    return SessionManager.transaction_context


async def get_link_repository() -> LinkRepository:
    return LinkRepository()


async def get_access_log_repository() -> AccessLogRepository:
    return AccessLogRepository()


async def get_daily_stats_repository() -> DailyStatsRepository:
    return DailyStatsRepository()


async def get_settings_repository() -> LinkSettingsRepository:
    return LinkSettingsRepository()


async def get_config_repository() -> SystemConfigRepository:
    return SystemConfigRepository()


def get_geo_locator() -> GeoLocator:
    return GeoLocator(
        url_template=settings.GEO_LOOKUP_URL,
        timeout=settings.GEO_LOOKUP_TIMEOUT,
        enabled=settings.GEO_LOOKUP_ENABLED,
    )


async def get_link_service(
    link_repo: LinkRepository = Depends(get_link_repository),
    settings_repo: LinkSettingsRepository = Depends(get_settings_repository),
    config_repo: SystemConfigRepository = Depends(get_config_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> LinkService:
    """Get an instance of the link service."""
    return LinkService(
        link_repository=link_repo,
        settings_repository=settings_repo,
        config_repository=config_repo,
        config=settings.link_service_config(),
        slug_config=settings.slug_config(),
        clock=clock,
    )


async def get_aggregator(
    access_log_repo: AccessLogRepository = Depends(get_access_log_repository),
    daily_stats_repo: DailyStatsRepository = Depends(get_daily_stats_repository),
    config_repo: SystemConfigRepository = Depends(get_config_repository),
    session_scope: SessionScope = Depends(get_session_scope),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> Aggregator:
    """Get an instance of the aggregator."""
    return Aggregator(
        access_log_repository=access_log_repo,
        daily_stats_repository=daily_stats_repo,
        config_repository=config_repo,
        session_scope=session_scope,
        clock=clock,
    )


async def get_access_recorder(
    access_log_repo: AccessLogRepository = Depends(get_access_log_repository),
    config_repo: SystemConfigRepository = Depends(get_config_repository),
    aggregator: Aggregator = Depends(get_aggregator),
    geo_locator: GeoLocator = Depends(get_geo_locator),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AccessRecorder:
    """Get an instance of the access recorder."""
    return AccessRecorder(
        access_log_repository=access_log_repo,
        config_repository=config_repo,
        aggregator=aggregator,
        geo_locator=geo_locator,
        clock=clock,
    )


async def get_analytics_service(
    link_repo: LinkRepository = Depends(get_link_repository),
    access_log_repo: AccessLogRepository = Depends(get_access_log_repository),
    daily_stats_repo: DailyStatsRepository = Depends(get_daily_stats_repository),
    settings_repo: LinkSettingsRepository = Depends(get_settings_repository),
    config_repo: SystemConfigRepository = Depends(get_config_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AnalyticsService:
    """Get an instance of the analytics service."""
    return AnalyticsService(
        link_repository=link_repo,
        access_log_repository=access_log_repo,
        daily_stats_repository=daily_stats_repo,
        settings_repository=settings_repo,
        config_repository=config_repo,
        clock=clock,
    )


async def get_system_config_service(
    config_repo: SystemConfigRepository = Depends(get_config_repository),
) -> SystemConfigService:
    return SystemConfigService(config_repository=config_repo)


def get_base_url() -> str:
    """Get the base URL for short links."""
    return settings.BASE_URL
