"""Tests for IP geolocation."""

import httpx
import pytest

from shorty.services.geo import GeoLocator


def locator_for(handler, calls=None):
    def recording(request):
        if calls is not None:
            calls.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return GeoLocator(url_template="http://geo.test/json/{ip}", client=client)


@pytest.mark.service
class TestGeoLocator:

    @pytest.mark.asyncio
    async def test_successful_lookup(self):
        calls = []
        locator = locator_for(lambda request: httpx.Response(200, json={
            "status": "success",
            "country": "Germany",
            "countryCode": "DE",
            "regionName": "Berlin",
            "city": "Berlin",
            "lat": 52.52,
            "lon": 13.40,
        }), calls)

        location = await locator.resolve("8.8.8.8")

        assert location.country == "Germany"
        assert location.country_code == "DE"
        assert location.city == "Berlin"
        assert location.lat == 52.52
        assert calls[0].url.path == "/json/8.8.8.8"
        assert "country" in calls[0].url.params["fields"]

    @pytest.mark.asyncio
    async def test_failed_status(self):
        locator = locator_for(lambda request: httpx.Response(200, json={"status": "fail", "message": "reserved range"}))
        assert await locator.resolve("8.8.8.8") is None

    @pytest.mark.asyncio
    async def test_http_error(self):
        locator = locator_for(lambda request: httpx.Response(503))
        assert await locator.resolve("8.8.8.8") is None

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await locator_for(refuse).resolve("8.8.8.8") is None

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        locator = locator_for(lambda request: httpx.Response(200, content=b"<html>"))
        assert await locator.resolve("8.8.8.8") is None

    @pytest.mark.parametrize("ip", ["127.0.0.1", "10.1.2.3", "192.168.0.4", "::1", "not-an-ip", None])
    @pytest.mark.asyncio
    async def test_private_addresses_skip_lookup(self, ip):
        calls = []
        locator = locator_for(lambda request: httpx.Response(200, json={"status": "success"}), calls)

        assert await locator.resolve(ip) is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_disabled(self):
        calls = []
        locator = locator_for(lambda request: httpx.Response(200, json={"status": "success"}), calls)
        locator.enabled = False

        assert await locator.resolve("8.8.8.8") is None
        assert calls == []
