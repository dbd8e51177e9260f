"""Tests for the system configuration and health endpoints."""

import pytest

from shorty.models.settings import SYSTEM_CONFIG_DEFAULTS


@pytest.mark.api
class TestConfigApi:

    @pytest.mark.asyncio
    async def test_list_config(self, client):
        response = await client.get("/api/config")

        assert response.status_code == 200
        keys = [entry["key"] for entry in response.json()]
        assert keys == sorted(SYSTEM_CONFIG_DEFAULTS)

    @pytest.mark.asyncio
    async def test_update_config(self, client):
        response = await client.put("/api/config/default_redirect_type", json={"value": "301"})

        assert response.status_code == 200
        assert response.json()["value"] == "301"

        link = (await client.post("/api/links", json={"original_url": "https://example.com"})).json()
        assert (await client.get(f"/{link['short_code']}")).status_code == 301

    @pytest.mark.asyncio
    async def test_invalid_config(self, client):
        assert (await client.put("/api/config/default_redirect_type", json={"value": "200"})).status_code == 400
        assert (await client.put("/api/config/unknown_key", json={"value": "1"})).status_code == 400


@pytest.mark.api
class TestHealthApi:

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/api/health/live")
        assert response.json() == {"alive": True}

    @pytest.mark.asyncio
    async def test_readiness(self, client):
        response = await client.get("/api/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True
