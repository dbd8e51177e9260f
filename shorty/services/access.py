"""Access recording for resolved links.

Every redirect to an active link produces one AccessLog row here, after
which today's rollup for that link is refreshed as a fire-and-forget task.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from shorty.core.tasks import fire_and_forget
from shorty.db.session import db_transaction
from shorty.db.types import utc_now
from shorty.models.access_log import AccessLog
from shorty.models.link import Link
from shorty.models.settings import LinkSettings
from shorty.repositories.access_log_repository import AccessLogRepository
from shorty.repositories.settings_repository import SystemConfigRepository
from shorty.services.aggregation import Aggregator
from shorty.services.geo import GeoLocator
from shorty.utils.network import extract_client_ip, is_private_ip
from shorty.utils.user_agent import ParsedUserAgent, parse_user_agent

logger = logging.getLogger(__name__)


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    return value[:length]


@dataclass
class RequestInfo:
    """The parts of an incoming request the recorder needs."""

    ip_address: str
    user_agent: Optional[str] = None
    referer: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestInfo":
        peer = request.client.host if request.client else None
        return cls(
            ip_address=extract_client_ip(request.headers, peer),
            user_agent=request.headers.get("user-agent"),
            referer=request.headers.get("referer"),
        )


class AccessRecorder:
    """
    Service persisting visit events.

    Args:
        access_log_repository: Store for access logs
        config_repository: Source of the global tracking toggles
        aggregator: Refreshes daily rollups after each visit
        geo_locator: Optional IP geolocation collaborator
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        access_log_repository: AccessLogRepository,
        config_repository: SystemConfigRepository,
        aggregator: Optional[Aggregator] = None,
        geo_locator: Optional[GeoLocator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.access_log_repository = access_log_repository
        self.config_repository = config_repository
        self.aggregator = aggregator
        self.geo_locator = geo_locator
        self.clock = clock

    async def record_visit(
        self,
        db: AsyncSession,
        link: Link,
        info: RequestInfo,
        settings: Optional[LinkSettings] = None,
        response_time_ms: Optional[int] = None,
    ) -> Optional[AccessLog]:
        """
        Record one visit and schedule the rollup of its day.

        Args:
            db: Database session, committed before the rollup is dispatched
            link: The resolved link
            info: Client address, user agent and referrer
            settings: The link's settings, if it has any
            response_time_ms: Time spent resolving the redirect

        Returns:
            The stored AccessLog, or None when analytics are off for the link
        """
        if settings is not None and not settings.track_analytics:
            logger.debug(f"Analytics disabled for link {link.id}, visit not recorded")
            return None

        # Read before the commit; later rollbacks cannot expire these
        link_id, short_code = link.id, link.short_code
        log = await self._persist(db, link_id, short_code, info, settings, response_time_ms)

        if self.aggregator is not None:
            fire_and_forget(
                self.aggregator.rollup_in_background(link_id, short_code, log.accessed_at.date()),
                name=f"rollup-{link_id}",
            )
        return log

    @db_transaction(db_param_name="db")
    async def _persist(
        self,
        db: AsyncSession,
        link_id: int,
        short_code: str,
        info: RequestInfo,
        settings: Optional[LinkSettings],
        response_time_ms: Optional[int],
    ) -> AccessLog:
        track_device = await self.config_repository.get_bool(db, "enable_device_tracking", True)
        track_geo = await self.config_repository.get_bool(db, "enable_geo_tracking", True)
        if settings is not None:
            track_device = track_device and settings.track_device
            track_geo = track_geo and settings.track_location

        parsed = parse_user_agent(info.user_agent) if track_device else ParsedUserAgent()

        country = city = None
        if track_geo and self.geo_locator is not None and not is_private_ip(info.ip_address):
            try:
                location = await self.geo_locator.resolve(info.ip_address)
            except Exception as e:
                logger.warning(f"Geo lookup raised for {info.ip_address}: {e}")
                location = None
            if location is not None:
                country, city = location.country, location.city

        log = await self.access_log_repository.create_access_log(db, {
            "link_id": link_id,
            "short_code": short_code,
            "accessed_at": self.clock(),
            "ip_address": _truncate(info.ip_address, 45),
            "user_agent": _truncate(info.user_agent, 1024),
            "referer": _truncate(info.referer, 2048),
            "country": country,
            "city": city,
            "device_type": parsed.device_type.value,
            "browser": parsed.browser,
            "os": parsed.os,
            "response_time_ms": response_time_ms,
        })
        logger.debug(f"Recorded visit {log.id} for link {link_id}")
        return log
