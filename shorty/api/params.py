"""Common API parameter definitions.

Pagination bounds are enforced by the services so that out-of-range
values are reported as itemized 400 errors rather than schema errors.
"""

from datetime import datetime
from typing import Optional

from fastapi import Query

from shorty.repositories.access_log_repository import AccessLogFilters
from shorty.db.types import as_utc


def PageParam(default: int = 1) -> int:
    """1-based page number."""
    return Query(default, description="Page number, starting at 1")


def LimitParam(default: int = 20) -> int:
    """Page size, 1 to 100."""
    return Query(default, description="Number of records per page (1-100)")


def access_log_filters(
    link_id: Optional[int] = Query(None, description="Only visits of this link"),
    short_code: Optional[str] = Query(None, max_length=16, description="Only visits of this short code"),
    device_type: Optional[str] = Query(None, description="mobile, desktop, tablet, bot or unknown"),
    country: Optional[str] = Query(None, description="Visitor country"),
    start: Optional[datetime] = Query(None, description="Earliest access time (inclusive)"),
    end: Optional[datetime] = Query(None, description="Latest access time (inclusive)"),
) -> AccessLogFilters:
    """Collect the access-log query parameters into filters."""
    return AccessLogFilters(
        link_id=link_id,
        short_code=short_code,
        device_type=device_type,
        country=country,
        start=as_utc(start),
        end=as_utc(end),
    )
