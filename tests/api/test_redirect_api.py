"""Tests for short link redirection."""

import pytest

from shorty.core.tasks import drain_background_tasks

IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1"
)


async def shorten(client, url="https://example.com", **payload):
    response = await client.post("/api/links", json={"original_url": url, **payload})
    assert response.status_code == 201
    return response.json()


@pytest.mark.api
class TestRedirect:

    @pytest.mark.asyncio
    async def test_redirect_counts_access(self, client):
        link = await shorten(client)

        response = await client.get(f"/{link['short_code']}", headers={"User-Agent": IPHONE})
        await drain_background_tasks()

        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert response.headers["x-robots-tag"] == "noindex, nofollow"

        stored = (await client.get(f"/api/links/code/{link['short_code']}")).json()
        assert stored["access_count"] == 1

    @pytest.mark.asyncio
    async def test_redirect_records_visit(self, client):
        link = await shorten(client)

        await client.get(
            f"/{link['short_code']}",
            headers={
                "User-Agent": IPHONE,
                "Referer": "https://news.example.org/story",
                "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
            },
        )
        await drain_background_tasks()

        logs = (await client.get("/api/analytics/access-logs", params={"link_id": link["id"]})).json()
        assert logs["total"] == 1
        visit = logs["items"][0]
        assert visit["ip_address"] == "203.0.113.7"
        assert visit["device_type"] == "mobile"
        assert visit["referer"] == "https://news.example.org/story"
        assert visit["short_code"] == link["short_code"]

        detail = (await client.get(f"/api/analytics/links/{link['id']}")).json()
        assert detail["top_referers"] == [{"key": "news.example.org", "count": 1}]

    @pytest.mark.asyncio
    async def test_expired_link_is_gone(self, client, clock):
        link = await shorten(client, "https://example.com/sale", expire_days=1)
        clock.advance(hours=25)

        response = await client.get(f"/{link['short_code']}")

        assert response.status_code == 410
        assert response.json()["short_code"] == link["short_code"]
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"

        raw = await client.get(f"/api/links/code/{link['short_code']}")
        assert raw.status_code == 200
        assert raw.json()["original_url"] == "https://example.com/sale"
        assert raw.json()["is_expired"] is True
        assert raw.json()["access_count"] == 0

    @pytest.mark.asyncio
    async def test_unknown_code(self, client):
        response = await client.get("/Zq8mW3xY")
        await drain_background_tasks()

        assert response.status_code == 404
        assert response.json() == {"detail": "Short link not found"}
        logs = (await client.get("/api/analytics/access-logs")).json()
        assert logs["total"] == 0

    @pytest.mark.parametrize("code", ["ab", "12345", "waytoolongshortcode"])
    @pytest.mark.asyncio
    async def test_malformed_code(self, client, code):
        assert (await client.get(f"/{code}")).status_code == 404

    @pytest.mark.asyncio
    async def test_redirect_type_from_settings(self, client):
        link = await shorten(client)
        await client.put(f"/api/links/{link['id']}/settings", json={"redirect_type": 307})

        response = await client.get(f"/{link['short_code']}")
        await drain_background_tasks()

        assert response.status_code == 307

    @pytest.mark.asyncio
    async def test_untracked_link_still_redirects(self, client):
        link = await shorten(client)
        await client.put(f"/api/links/{link['id']}/settings", json={"track_analytics": False})

        response = await client.get(f"/{link['short_code']}")
        await drain_background_tasks()

        assert response.status_code == 302
        logs = (await client.get("/api/analytics/access-logs")).json()
        assert logs["total"] == 0
