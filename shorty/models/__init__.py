"""
Data models for the link shortener.

Importing this package registers every table on SQLModel metadata.
"""

from sqlmodel import SQLModel

# Parent table first, then children
from shorty.models.link import Link, LinkBase, LinkCreate, LinkUpdate
from shorty.models.access_log import AccessLog, AccessLogBase, AccessLogCreate
from shorty.models.daily_stats import DailyStats, TopItem
from shorty.models.settings import (
    REDIRECT_TYPES,
    SYSTEM_CONFIG_DEFAULTS,
    LinkSettings,
    LinkSettingsBase,
    LinkSettingsUpdate,
    SystemConfig,
)

__all__ = [
    "SQLModel",
    # Links
    "Link",
    "LinkBase",
    "LinkCreate",
    "LinkUpdate",
    # Access logs and rollups
    "AccessLog",
    "AccessLogBase",
    "AccessLogCreate",
    "DailyStats",
    "TopItem",
    # Settings
    "LinkSettings",
    "LinkSettingsBase",
    "LinkSettingsUpdate",
    "SystemConfig",
    "REDIRECT_TYPES",
    "SYSTEM_CONFIG_DEFAULTS",
]
