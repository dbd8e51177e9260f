"""Service layer for the link shortener.

Services hold the business logic and orchestrate the repositories.
"""

from shorty.services.access import AccessRecorder, RequestInfo
from shorty.services.aggregation import Aggregator, CleanupReport, DailyRollup, compute_daily_rollup
from shorty.services.analytics import AnalyticsService
from shorty.services.geo import GeoLocation, GeoLocator
from shorty.services.links import LinkService, LinkState, Resolution
from shorty.services.system_config import SystemConfigService

__all__ = [
    "AccessRecorder",
    "Aggregator",
    "AnalyticsService",
    "CleanupReport",
    "DailyRollup",
    "GeoLocation",
    "GeoLocator",
    "LinkService",
    "LinkState",
    "RequestInfo",
    "Resolution",
    "SystemConfigService",
    "compute_daily_rollup",
]
