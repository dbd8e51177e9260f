"""API request and response schemas.

This module contains Pydantic models for API request validation
and response serialization.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Period(str, Enum):
    """Ranking windows for top links."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class ErrorResponse(BaseModel):
    """Error body; ``errors`` itemizes validation failures."""
    detail: str
    errors: Optional[List[str]] = None


# Links

class LinkCreateRequest(BaseModel):
    """Request schema for creating a short link."""
    original_url: str = Field(..., min_length=1, max_length=4096)
    custom_slug: Optional[str] = Field(None, max_length=64)
    expire_days: Optional[int] = Field(None, ge=1, le=3650)
    expires_at: Optional[datetime] = None

    @field_validator("original_url")
    def strip_url(cls, v: str) -> str:
        return v.strip()


class LinkUpdateRequest(BaseModel):
    """Request schema for changing a link's destination or expiry."""
    original_url: Optional[str] = Field(None, min_length=1, max_length=4096)
    expires_at: Optional[datetime] = None


class LinkResponse(BaseModel):
    """Response schema for link information."""
    id: int
    short_code: str
    original_url: str
    short_url: str  # Full URL including base domain
    created_at: datetime
    expires_at: Optional[datetime] = None
    access_count: int
    is_expired: bool


class LinkListResponse(BaseModel):
    items: List[LinkResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SuggestionsResponse(BaseModel):
    base: Optional[str] = None
    suggestions: List[str]


class LinkSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    link_id: int
    is_active: bool
    has_password: bool = False
    max_visits: Optional[int] = None
    redirect_type: int
    enable_preview: bool
    track_analytics: bool
    track_location: bool
    track_device: bool
    allowed_referers: List[str] = []
    blocked_countries: List[str] = []
    blocked_ips: List[str] = []
    created_at: datetime
    updated_at: datetime


class LinkSettingsUpdateRequest(BaseModel):
    """Partial settings update; omitted fields are left unchanged."""
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, max_length=255)
    max_visits: Optional[int] = None
    redirect_type: Optional[int] = None
    enable_preview: Optional[bool] = None
    track_analytics: Optional[bool] = None
    track_location: Optional[bool] = None
    track_device: Optional[bool] = None
    allowed_referers: Optional[List[str]] = None
    blocked_countries: Optional[List[str]] = None
    blocked_ips: Optional[List[str]] = None


# Analytics

class TopItemResponse(BaseModel):
    key: str
    count: int


class TrendPoint(BaseModel):
    date: date
    visits: int
    unique_visitors: int


class LinkSummary(BaseModel):
    id: int
    short_code: str
    original_url: str
    access_count: int
    visits: int
    created_at: datetime


class OverviewResponse(BaseModel):
    total_links: int
    total_visits: int
    unique_visitors: int
    visits_today: int
    visits_this_week: int
    visits_this_month: int
    device_distribution: Dict[str, int]
    top_countries: List[TopItemResponse]
    top_links: List[LinkSummary]
    trend: List[TrendPoint]


class AccessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    link_id: int
    short_code: str
    accessed_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    response_time_ms: Optional[int] = None


class AccessLogListResponse(BaseModel):
    items: List[AccessLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class LinkAnalyticsResponse(BaseModel):
    link: LinkResponse
    settings: Optional[LinkSettingsResponse] = None
    total_visits: int
    unique_visitors: int
    visits_today: int
    visits_this_week: int
    visits_this_month: int
    device_distribution: Dict[str, int]
    top_countries: List[TopItemResponse]
    top_referers: List[TopItemResponse]
    recent_visits: List[AccessLogResponse]


class RateLimitResponse(BaseModel):
    ip_address: str
    link_id: Optional[int] = None
    count: int
    limit: int
    remaining: int
    allowed: bool
    window_seconds: int
    reset_at: datetime


class CleanupResponse(BaseModel):
    expired_links_deleted: int
    access_logs_deleted: int
    daily_stats_deleted: int
    links_aggregated: int
    aggregated_day: date


# System configuration

class SystemConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: str
    description: Optional[str] = None
    updated_at: datetime


class SystemConfigUpdateRequest(BaseModel):
    value: str = Field(..., min_length=1, max_length=1000)
