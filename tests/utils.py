"""Test utilities for link shortener tests."""

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from shorty.models.access_log import AccessLog
from shorty.models.link import Link


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def random_string(length: int = 10) -> str:
    """Generate a random alphanumeric string."""
    return "".join(random.choice(string.ascii_letters + string.digits) for _ in range(length))


def random_url() -> str:
    """Generate a random URL for testing."""
    return f"https://{random_string(8).lower()}.com/{random_string(12)}"


async def create_test_link(
    db,
    original_url: Optional[str] = None,
    short_code: Optional[str] = None,
    created_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    access_count: int = 0
) -> Link:
    """Create and commit a Link row."""
    link = Link(
        original_url=original_url or random_url(),
        short_code=short_code or "t" + random_string(6),
        created_at=created_at or datetime.now(timezone.utc),
        expires_at=expires_at,
        access_count=access_count,
    )
    db.add(link)
    await db.commit()
    await db.refresh(link)
    return link


async def create_access_log(
    db,
    link: Link,
    accessed_at: datetime,
    ip_address: str = "203.0.113.1",
    device_type: Optional[str] = "desktop",
    country: Optional[str] = None,
    city: Optional[str] = None,
    referer: Optional[str] = None,
    user_agent: Optional[str] = None
) -> AccessLog:
    """Create and commit an AccessLog row for link."""
    log = AccessLog(
        link_id=link.id,
        short_code=link.short_code,
        accessed_at=accessed_at,
        ip_address=ip_address,
        device_type=device_type,
        country=country,
        city=city,
        referer=referer,
        user_agent=user_agent,
    )
    db.add(log)
    await db.commit()
    await db.refresh(log)
    return log
