"""Per-link settings and system-wide configuration models."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from shorty.db.types import UTCDateTime, utc_now

REDIRECT_TYPES = (301, 302, 307)


class LinkSettingsBase(SQLModel):
    """Editable per-link behaviour."""

    is_active: bool = Field(default=True)
    password: Optional[str] = Field(default=None, max_length=255)
    max_visits: Optional[int] = Field(default=None, ge=1)
    redirect_type: int = Field(default=302, description="301, 302 or 307")
    enable_preview: bool = Field(default=False)
    track_analytics: bool = Field(default=True)
    track_location: bool = Field(default=True)
    track_device: bool = Field(default=True)


class LinkSettings(LinkSettingsBase, table=True):
    """One-to-one settings row for a link, created on first use."""

    __tablename__ = "link_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    link_id: int = Field(foreign_key="links.id", ondelete="CASCADE", unique=True)

    allowed_referers: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    blocked_countries: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    blocked_ips: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class LinkSettingsUpdate(SQLModel):
    """Schema for partial settings updates."""
    is_active: Optional[bool] = None
    password: Optional[str] = None
    max_visits: Optional[int] = None
    redirect_type: Optional[int] = None
    enable_preview: Optional[bool] = None
    track_analytics: Optional[bool] = None
    track_location: Optional[bool] = None
    track_device: Optional[bool] = None
    allowed_referers: Optional[List[str]] = None
    blocked_countries: Optional[List[str]] = None
    blocked_ips: Optional[List[str]] = None


class SystemConfig(SQLModel, table=True):
    """Operational key/value parameters, written administratively."""

    __tablename__ = "system_config"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(unique=True, max_length=100)
    value: str = Field(max_length=1000)
    description: Optional[str] = Field(default=None, max_length=500)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


# key -> (default value, description)
SYSTEM_CONFIG_DEFAULTS = {
    "analytics_retention_days": ("365", "Days to keep raw access logs"),
    "daily_stats_retention_days": ("1095", "Days to keep daily rollups"),
    "max_visits_per_minute": ("60", "Per-IP visit ceiling used by the rate-limit check"),
    "enable_geo_tracking": ("1", "Resolve visitor IPs to country and city"),
    "enable_device_tracking": ("1", "Parse visitor user agents"),
    "default_redirect_type": ("302", "Redirect status for links without settings"),
    "enable_analytics_by_default": ("1", "Default analytics toggle for new link settings"),
    "cleanup_interval_hours": ("24", "Hours between scheduled cleanup runs"),
}
