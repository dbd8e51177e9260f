"""IP geolocation through the ip-api.com JSON endpoint.

Lookups are best-effort: a single request with a short timeout and no
retry. Any failure yields ``None``.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from shorty.utils.network import is_private_ip

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_URL = "http://ip-api.com/json/{ip}"
LOOKUP_FIELDS = "status,message,country,countryCode,regionName,city,lat,lon"


class GeoLocation(BaseModel):
    country: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class GeoLocator:
    """
    Resolver of public IP addresses to a coarse location.

    Args:
        url_template: Lookup URL with an ``{ip}`` placeholder
        timeout: Request timeout in seconds
        enabled: When False every lookup returns None
        client: Optional shared ``httpx.AsyncClient``; a short-lived one is
            opened per lookup otherwise
    """

    def __init__(
        self,
        url_template: str = DEFAULT_LOOKUP_URL,
        timeout: float = 2.0,
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self.enabled = enabled
        self._client = client

    async def _fetch(self, client: httpx.AsyncClient, ip: str) -> httpx.Response:
        return await client.get(
            self.url_template.format(ip=ip),
            params={"fields": LOOKUP_FIELDS},
            timeout=self.timeout,
        )

    async def resolve(self, ip: Optional[str]) -> Optional[GeoLocation]:
        """
        Look up one IP address.

        Private, loopback and malformed addresses are skipped without a
        request.
        """
        if not self.enabled or is_private_ip(ip):
            return None

        try:
            if self._client is not None:
                response = await self._fetch(self._client, ip)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._fetch(client, ip)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geo lookup failed for {ip}: {e}")
            return None

        if data.get("status") != "success":
            logger.info(f"Geo lookup for {ip} returned no result: {data.get('message')}")
            return None

        return GeoLocation(
            country=data.get("country"),
            country_code=data.get("countryCode"),
            city=data.get("city"),
            region=data.get("regionName"),
            lat=data.get("lat"),
            lon=data.get("lon"),
        )
