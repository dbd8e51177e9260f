"""Tests for the analytics API."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from shorty.core.tasks import drain_background_tasks

DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@pytest_asyncio.fixture
async def visited(client):
    """One link visited three times from two addresses."""
    link = (await client.post("/api/links", json={"original_url": "https://example.com/report"})).json()
    for ip in ("203.0.113.1", "203.0.113.1", "203.0.113.2"):
        await client.get(f"/{link['short_code']}", headers={"User-Agent": DESKTOP, "X-Forwarded-For": ip})
        await drain_background_tasks()
    return link


@pytest.mark.api
class TestAnalyticsApi:

    @pytest.mark.asyncio
    async def test_overview(self, client, visited):
        response = await client.get("/api/analytics/overview")

        assert response.status_code == 200
        data = response.json()
        assert data["total_links"] == 1
        assert data["total_visits"] == 3
        assert data["unique_visitors"] == 2
        assert data["visits_today"] == 3
        assert data["device_distribution"] == {"desktop": 3}
        assert data["top_links"][0]["short_code"] == visited["short_code"]
        assert len(data["trend"]) == 30
        assert data["trend"][-1] == {"date": "2024-03-15", "visits": 3, "unique_visitors": 2}

    @pytest.mark.asyncio
    async def test_link_analytics(self, client, visited):
        by_id = await client.get(f"/api/analytics/links/{visited['id']}")
        by_code = await client.get(f"/api/analytics/links/code/{visited['short_code']}")

        assert by_id.status_code == 200
        assert by_id.json() == by_code.json()
        data = by_id.json()
        assert data["link"]["short_code"] == visited["short_code"]
        assert data["total_visits"] == 3
        assert data["unique_visitors"] == 2
        assert len(data["recent_visits"]) == 3

    @pytest.mark.asyncio
    async def test_link_analytics_missing(self, client):
        assert (await client.get("/api/analytics/links/404")).status_code == 404

    @pytest.mark.asyncio
    async def test_top_links(self, client, visited):
        response = await client.get("/api/analytics/top-links", params={"period": "day", "limit": 5})

        assert response.status_code == 200
        assert response.json()[0]["visits"] == 3

    @pytest.mark.asyncio
    async def test_top_links_unknown_period(self, client):
        assert (await client.get("/api/analytics/top-links", params={"period": "decade"})).status_code == 422

    @pytest.mark.asyncio
    async def test_trend(self, client, visited):
        response = await client.get("/api/analytics/trend", params={"link_id": visited["id"], "days": 7})

        assert response.status_code == 200
        assert len(response.json()) == 7
        assert (await client.get("/api/analytics/trend", params={"days": 400})).status_code == 400

    @pytest.mark.asyncio
    async def test_access_log_filters(self, client, visited):
        response = await client.get(
            "/api/analytics/access-logs",
            params={"short_code": visited["short_code"], "limit": 2, "start": datetime(2024, 3, 15, tzinfo=timezone.utc).isoformat()},
        )

        data = response.json()
        assert data["total"] == 3
        assert data["total_pages"] == 2
        assert len(data["items"]) == 2

    @pytest.mark.asyncio
    async def test_export_csv(self, client, visited):
        response = await client.get("/api/analytics/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == 'attachment; filename="access_logs_20240315120000.csv"'
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("id,link_id,short_code,accessed_at")
        assert len(lines) == 4

    @pytest.mark.asyncio
    async def test_export_json(self, client, visited):
        response = await client.get("/api/analytics/export", params={"format": "json"})

        assert response.headers["content-type"].startswith("application/json")
        assert len(response.json()) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_check(self, client, visited):
        response = await client.get("/api/analytics/rate-limit", params={"ip": "203.0.113.1"})

        data = response.json()
        assert data["count"] == 2
        assert data["limit"] == 60
        assert data["remaining"] == 58
        assert data["allowed"] is True

    @pytest.mark.asyncio
    async def test_cleanup(self, client, clock):
        await client.post("/api/links", json={"original_url": "https://example.com/old", "expire_days": 1})
        clock.advance(days=2)

        response = await client.post("/api/analytics/cleanup")

        assert response.status_code == 200
        data = response.json()
        assert data["expired_links_deleted"] == 1
        assert data["aggregated_day"] == "2024-03-16"
