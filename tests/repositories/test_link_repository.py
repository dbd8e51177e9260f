"""Tests for the link repository."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from shorty.models.access_log import AccessLog
from shorty.models.link import Link, LinkCreate
from shorty.repositories.base import DuplicateEntityError
from tests.utils import create_access_log, create_test_link, random_url

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.repository
class TestLinkRepository:
    """Test suite for the link repository."""

    @pytest.mark.asyncio
    async def test_create_link(self, test_db, link_repository):
        url = random_url()
        link = await link_repository.create_link(test_db, LinkCreate(original_url=url, short_code="abcd12"))
        await test_db.commit()

        assert link.id is not None
        assert link.access_count == 0
        stored = await link_repository.get_by_short_code(test_db, "abcd12")
        assert stored is not None
        assert stored.original_url == url

    @pytest.mark.asyncio
    async def test_create_duplicate_short_code(self, test_db, link_repository):
        await create_test_link(test_db, short_code="dupe42")

        with pytest.raises(DuplicateEntityError) as exc_info:
            await link_repository.create_link(test_db, {"original_url": random_url(), "short_code": "dupe42"})

        assert exc_info.value.field_name == "short_code"
        assert exc_info.value.value == "dupe42"
        assert await link_repository.count(test_db) == 1

    @pytest.mark.asyncio
    async def test_code_exists(self, test_db, link_repository):
        await create_test_link(test_db, short_code="taken1")
        assert await link_repository.code_exists(test_db, "taken1")
        assert not await link_repository.code_exists(test_db, "free01")

    @pytest.mark.asyncio
    async def test_get_by_original_url_skips_expired(self, test_db, link_repository):
        url = "https://example.com/reuse"
        await create_test_link(test_db, original_url=url, short_code="old001", expires_at=NOW - timedelta(days=1))
        assert await link_repository.get_by_original_url(test_db, url, now=NOW) is None

        fresh = await create_test_link(test_db, original_url=url, short_code="new001", expires_at=NOW + timedelta(days=1))
        found = await link_repository.get_by_original_url(test_db, url, now=NOW)
        assert found.id == fresh.id

    @pytest.mark.asyncio
    async def test_get_by_original_url_newest_first(self, test_db, link_repository):
        url = "https://example.com/twice"
        await create_test_link(test_db, original_url=url, short_code="first1", created_at=NOW - timedelta(hours=2))
        second = await create_test_link(test_db, original_url=url, short_code="second", created_at=NOW - timedelta(hours=1))

        found = await link_repository.get_by_original_url(test_db, url, now=NOW)
        assert found.id == second.id

    @pytest.mark.asyncio
    async def test_increment_access_count(self, test_db, link_repository):
        link = await create_test_link(test_db)

        assert await link_repository.increment_access_count(test_db, link.id) == 1
        assert await link_repository.increment_access_count(test_db, link.id) == 2
        await test_db.commit()

        result = await test_db.execute(select(Link.access_count).where(Link.id == link.id))
        assert result.scalar_one() == 2
        assert await link_repository.increment_access_count(test_db, 9999) is None

    @pytest.mark.asyncio
    async def test_list_links_paginates_newest_first(self, test_db, link_repository):
        for i in range(5):
            await create_test_link(test_db, short_code=f"page{i}x", created_at=NOW + timedelta(minutes=i))

        items, total = await link_repository.list_links(test_db, limit=2, offset=0)
        assert total == 5
        assert [link.short_code for link in items] == ["page4x", "page3x"]

        items, _ = await link_repository.list_links(test_db, limit=2, offset=4)
        assert [link.short_code for link in items] == ["page0x"]

    @pytest.mark.asyncio
    async def test_top_links_and_total(self, test_db, link_repository):
        low = await create_test_link(test_db, access_count=1)
        high = await create_test_link(test_db, access_count=7)

        top = await link_repository.get_top_links(test_db, limit=1)
        assert [link.id for link in top] == [high.id]
        assert await link_repository.total_access_count(test_db) == 8

        by_id = await link_repository.get_by_ids(test_db, [low.id, high.id, 12345])
        assert set(by_id) == {low.id, high.id}

    @pytest.mark.asyncio
    async def test_delete_expired_links_cascades(self, test_db, link_repository):
        expired = await create_test_link(test_db, short_code="gone01", expires_at=NOW - timedelta(minutes=1))
        await create_test_link(test_db, short_code="stay01", expires_at=NOW + timedelta(days=1))
        await create_test_link(test_db, short_code="stay02")
        await create_access_log(test_db, expired, NOW - timedelta(hours=3))

        deleted = await link_repository.delete_expired_links(test_db, now=NOW)
        await test_db.commit()

        assert deleted == 1
        assert await link_repository.get_by_short_code(test_db, "gone01") is None
        assert await link_repository.count(test_db) == 2
        remaining_logs = await test_db.execute(select(AccessLog))
        assert remaining_logs.scalars().all() == []

    @pytest.mark.asyncio
    async def test_update_and_delete(self, test_db, link_repository):
        link = await create_test_link(test_db)

        updated = await link_repository.update(test_db, link.id, {"original_url": "https://example.org/"})
        assert updated.original_url == "https://example.org/"
        assert await link_repository.update(test_db, 4242, {"original_url": "https://x.org/"}) is None

        assert await link_repository.delete(test_db, link.id) is True
        assert await link_repository.delete(test_db, link.id) is False
