"""Link data models.

This module defines the Link model mapping short codes to destinations.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from shorty.db.types import UTCDateTime, as_utc, utc_now


class LinkBase(SQLModel):
    """Base model for link data."""

    original_url: str = Field(
        description="Canonical destination URL",
        max_length=2048,
    )
    short_code: str = Field(
        description="Unique code appended to the base URL",
        unique=True,
        max_length=16,
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_type=UTCDateTime,
        description="When this link stops redirecting (null means never)",
    )


class Link(LinkBase, table=True):
    """
    Link model for storing shortened URLs.

    ``short_code`` is immutable once created and ``access_count`` only
    ever increases. A link past ``expires_at`` stays in the table,
    queryable but not redirecting, until a cleanup pass removes it.
    Access logs, daily stats and settings are removed with the link by
    ON DELETE CASCADE.
    """

    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime,
        description="Timestamp when this link was created",
    )
    access_count: int = Field(
        default=0,
        description="Number of successful redirects",
    )

    __table_args__ = (
        Index("ix_links_original_url", "original_url"),
        Index("ix_links_created_at", "created_at"),
        Index("ix_links_expires_at", "expires_at"),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the link has expired.

        Args:
            now: Reference time, defaults to the current UTC time
        """
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) < as_utc(now or utc_now())


class LinkCreate(LinkBase):
    """Schema for creating a link."""
    pass


class LinkUpdate(SQLModel):
    """Schema for updating a link."""
    original_url: Optional[str] = None
    expires_at: Optional[datetime] = None
