"""
Access log data models.

One AccessLog row is written per redirect that resolved to an active link.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from shorty.db.types import UTCDateTime, utc_now


class AccessLogBase(SQLModel):
    """Base model for access log data."""

    link_id: int = Field(
        foreign_key="links.id",
        ondelete="CASCADE",
        description="Link that was resolved",
    )
    short_code: str = Field(
        max_length=16,
        description="Denormalized short code for query convenience",
    )
    accessed_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime,
        description="When the redirect happened",
    )
    ip_address: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = Field(default=None, max_length=1024)
    referer: Optional[str] = Field(default=None, max_length=2048)
    country: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    device_type: Optional[str] = Field(
        default=None,
        max_length=16,
        description="mobile, desktop, tablet, bot or unknown",
    )
    browser: Optional[str] = Field(default=None, max_length=50)
    os: Optional[str] = Field(default=None, max_length=50)
    response_time_ms: Optional[int] = Field(default=None)


class AccessLog(AccessLogBase, table=True):
    """
    Access log model.

    Created only by the access recorder, never updated, and deleted by
    retention cleanup or when its link is deleted.
    """

    __tablename__ = "access_logs"

    id: Optional[int] = Field(default=None, primary_key=True)

    __table_args__ = (
        Index("ix_access_logs_link_id_accessed_at", "link_id", "accessed_at"),
        Index("ix_access_logs_accessed_at", "accessed_at"),
        Index("ix_access_logs_ip_address_accessed_at", "ip_address", "accessed_at"),
        Index("ix_access_logs_short_code", "short_code"),
    )


class AccessLogCreate(AccessLogBase):
    """Schema for creating an access log row."""
    pass
