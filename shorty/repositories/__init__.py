"""Repository layer for the link shortener.

Repository classes abstract database operations; together they make up the
store interface the services consume.
"""

from shorty.repositories.base import (
    BaseRepository,
    DuplicateEntityError,
    EntityNotFoundError,
    RepositoryError,
)
from shorty.repositories.access_log_repository import AccessLogFilters, AccessLogRepository
from shorty.repositories.daily_stats_repository import DailyStatsRepository
from shorty.repositories.link_repository import LinkRepository
from shorty.repositories.settings_repository import LinkSettingsRepository, SystemConfigRepository

__all__ = [
    # Base classes and exceptions
    "BaseRepository",
    "RepositoryError",
    "EntityNotFoundError",
    "DuplicateEntityError",

    # Concrete repositories
    "AccessLogFilters",
    "AccessLogRepository",
    "DailyStatsRepository",
    "LinkRepository",
    "LinkSettingsRepository",
    "SystemConfigRepository",
]
