"""Daily rollup models.

Top-N lists are typed as :class:`TopItem` in the domain and stored in
JSON columns; the repository converts between the two.
"""

import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from shorty.db.types import UTCDateTime, utc_now


class TopItem(BaseModel):
    """One ranked entry of a top-N list."""

    key: str
    count: int


class DailyStats(SQLModel, table=True):
    """Per-link, per-day aggregate of access logs."""

    __tablename__ = "daily_stats"

    id: Optional[int] = Field(default=None, primary_key=True)
    link_id: int = Field(foreign_key="links.id", ondelete="CASCADE")
    short_code: str = Field(max_length=16)
    date: dt.date = Field(description="Calendar day (UTC) this row aggregates")

    total_visits: int = Field(default=0)
    unique_visitors: int = Field(default=0)
    mobile_visits: int = Field(default=0)
    desktop_visits: int = Field(default=0)
    tablet_visits: int = Field(default=0)
    bot_visits: int = Field(default=0)

    top_countries: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    top_cities: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    top_referers: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_at: dt.datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: dt.datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    __table_args__ = (
        UniqueConstraint("link_id", "date", name="uq_daily_stats_link_date"),
        Index("ix_daily_stats_date", "date"),
    )
