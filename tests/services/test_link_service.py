"""Tests for link creation, resolution and management."""

from datetime import timedelta

import pytest

from shorty.core.config import LinkServiceConfig
from shorty.models.link import LinkUpdate
from shorty.repositories.base import RepositoryError
from shorty.services.exceptions import (
    CustomSlugValidationError,
    InvalidInputError,
    InvalidPaginationError,
    InvalidURLError,
    LinkNotFoundError,
    SlugAlreadyExistsError,
    SlugGenerationError,
)
from shorty.services.links import LinkService, LinkState, is_valid_code_format
from shorty.utils.slugs import SlugConfig
from tests.utils import create_test_link


@pytest.fixture
def link_service(link_repository, settings_repository, config_repository, clock):
    return LinkService(
        link_repository=link_repository,
        settings_repository=settings_repository,
        config_repository=config_repository,
        config=LinkServiceConfig(base_url="https://sho.rt/"),
        clock=clock,
    )


@pytest.mark.service
class TestLinkCreation:

    @pytest.mark.asyncio
    async def test_generated_code(self, test_db, link_service, clock):
        link = await link_service.create_link(test_db, "https://example.com")

        assert len(link.short_code) == 6
        assert link.short_code.isalnum()
        assert link.original_url == "https://example.com/"
        assert link.created_at == clock()
        assert link.expires_at == clock() + timedelta(days=365)
        assert link_service.short_url(link) == f"https://sho.rt/{link.short_code}"

    @pytest.mark.asyncio
    async def test_reuses_link_for_same_url(self, test_db, link_service):
        first = await link_service.create_link(test_db, "https://example.com/page")
        second = await link_service.create_link(test_db, "example.com/page/")

        assert second.id == first.id
        assert second.short_code == first.short_code
        assert await link_service.link_repository.count(test_db) == 1

    @pytest.mark.asyncio
    async def test_expired_link_is_not_reused(self, test_db, link_service, clock):
        first = await link_service.create_link(test_db, "https://example.com/x", expire_days=1)
        clock.advance(days=2)
        second = await link_service.create_link(test_db, "https://example.com/x")

        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_custom_slug(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com", custom_slug=" promo24 ")
        assert link.short_code == "promo24"

    @pytest.mark.asyncio
    async def test_custom_slug_bypasses_reuse(self, test_db, link_service):
        first = await link_service.create_link(test_db, "https://example.com")
        custom = await link_service.create_link(test_db, "https://example.com", custom_slug="mine42")

        assert custom.id != first.id

    @pytest.mark.asyncio
    async def test_reserved_custom_slug_rejected(self, test_db, link_service):
        with pytest.raises(CustomSlugValidationError) as exc_info:
            await link_service.create_link(test_db, "https://example.com", custom_slug="admin123")

        assert any("reserved" in error for error in exc_info.value.errors)
        assert await link_service.link_repository.count(test_db) == 0

    @pytest.mark.asyncio
    async def test_taken_custom_slug(self, test_db, link_service):
        await create_test_link(test_db, short_code="taken9")

        with pytest.raises(SlugAlreadyExistsError):
            await link_service.create_link(test_db, "https://example.com/other", custom_slug="taken9")

    @pytest.mark.asyncio
    async def test_custom_slug_disabled(self, test_db, link_repository, settings_repository, config_repository):
        service = LinkService(
            link_repository,
            settings_repository,
            config_repository,
            config=LinkServiceConfig(enable_custom_slug=False),
        )
        with pytest.raises(InvalidInputError):
            await service.create_link(test_db, "https://example.com", custom_slug="mine42")

    @pytest.mark.asyncio
    async def test_invalid_url(self, test_db, link_service):
        with pytest.raises(InvalidURLError) as exc_info:
            await link_service.create_link(test_db, "http://192.168.1.1/router")

        assert exc_info.value.errors
        assert await link_service.link_repository.count(test_db) == 0

    @pytest.mark.asyncio
    async def test_explicit_expiry_wins(self, test_db, link_service, clock):
        expires = clock() + timedelta(hours=3)
        link = await link_service.create_link(test_db, "https://example.com", expires_at=expires, expire_days=10)
        assert link.expires_at == expires

    @pytest.mark.asyncio
    async def test_generation_exhausted(self, test_db, link_repository, settings_repository, config_repository):
        service = LinkService(
            link_repository,
            settings_repository,
            config_repository,
            slug_config=SlugConfig(max_retries=3),
        )

        async def always_taken(db, code):
            return True

        link_repository.code_exists = always_taken
        with pytest.raises(SlugGenerationError) as exc_info:
            await service.create_link(test_db, "https://example.com")
        assert exc_info.value.attempts == 3

    @pytest.mark.asyncio
    async def test_generated_code_retries_on_unique_violation(self, test_db, link_service, monkeypatch):
        # The pre-check misses the row, so only the unique constraint catches it
        await create_test_link(test_db, short_code="taken1")
        candidates = iter(["taken1", "fresh1"])
        monkeypatch.setattr(link_service.slug_generator, "_candidate", lambda attempt, length: next(candidates))

        async def never_taken(db, code):
            return False

        monkeypatch.setattr(link_service.link_repository, "code_exists", never_taken)

        link = await link_service.create_link(test_db, "https://example.com/fresh")

        assert link.short_code == "fresh1"
        assert await link_service.link_repository.count(test_db) == 2

    @pytest.mark.asyncio
    async def test_custom_slug_claimed_after_check(self, test_db, link_service, monkeypatch):
        await create_test_link(test_db, short_code="promo24")

        async def never_taken(db, code):
            return False

        monkeypatch.setattr(link_service.link_repository, "code_exists", never_taken)

        with pytest.raises(SlugAlreadyExistsError):
            await link_service.create_link(test_db, "https://example.com/sale", custom_slug="promo24")
        assert await link_service.link_repository.count(test_db) == 1


@pytest.mark.service
class TestLinkResolution:

    def test_code_format(self):
        assert is_valid_code_format("abc")
        assert not is_valid_code_format("ab")
        assert not is_valid_code_format("12345")
        assert not is_valid_code_format("abc-1")
        assert not is_valid_code_format("a" * 17)

    @pytest.mark.asyncio
    async def test_active_link_counts_access(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com")

        resolution = await link_service.resolve(test_db, link.short_code)
        await test_db.commit()

        assert resolution.state is LinkState.ACTIVE
        assert resolution.redirect_type == 302
        stored = await link_service.get_link(test_db, link.id)
        await test_db.refresh(stored)
        assert stored.access_count == 1

    @pytest.mark.asyncio
    async def test_untracked_resolution(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com")
        await link_service.resolve(test_db, link.short_code, track=False)
        await test_db.commit()

        await test_db.refresh(link)
        assert link.access_count == 0

    @pytest.mark.asyncio
    async def test_expired_is_distinct_from_not_found(self, test_db, link_service, clock):
        link = await link_service.create_link(test_db, "https://example.com/soon", expire_days=1)
        clock.advance(hours=25)

        resolution = await link_service.resolve(test_db, link.short_code)

        assert resolution.state is LinkState.EXPIRED
        raw = await link_service.get_link_raw(test_db, link.short_code)
        assert raw.original_url == "https://example.com/soon"

    @pytest.mark.asyncio
    async def test_unknown_and_malformed_codes(self, test_db, link_service):
        assert (await link_service.resolve(test_db, "Zq8mW3xY")).state is LinkState.NOT_FOUND
        assert (await link_service.resolve(test_db, "no!")).state is LinkState.NOT_FOUND

    @pytest.mark.asyncio
    async def test_redirect_type_from_settings(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com")
        await link_service.update_settings(test_db, link.id, {"redirect_type": 301})

        resolution = await link_service.resolve(test_db, link.short_code)
        assert resolution.redirect_type == 301
        assert resolution.settings is not None

    @pytest.mark.asyncio
    async def test_redirect_type_from_system_config(self, test_db, link_service, config_repository):
        await config_repository.set_value(test_db, "default_redirect_type", "307")
        await test_db.commit()
        link = await link_service.create_link(test_db, "https://example.com")

        resolution = await link_service.resolve(test_db, link.short_code)
        assert resolution.redirect_type == 307

    @pytest.mark.asyncio
    async def test_failed_increment_still_resolves(self, test_db, link_service, link_repository):
        link = await link_service.create_link(test_db, "https://example.com/kept")

        async def broken_increment(db, link_id):
            raise RepositoryError("database is locked")

        link_repository.increment_access_count = broken_increment
        resolution = await link_service.resolve(test_db, link.short_code)

        assert resolution.state is LinkState.ACTIVE
        assert resolution.link.original_url == "https://example.com/kept"


@pytest.mark.service
class TestLinkManagement:

    @pytest.mark.asyncio
    async def test_get_link_not_found(self, test_db, link_service):
        with pytest.raises(LinkNotFoundError):
            await link_service.get_link(test_db, 404)
        with pytest.raises(LinkNotFoundError):
            await link_service.get_link_by_code(test_db, "nothere")

    @pytest.mark.asyncio
    async def test_update_link_normalizes(self, test_db, link_service, clock):
        link = await link_service.create_link(test_db, "https://example.com")
        new_expiry = clock() + timedelta(days=3)

        updated = await link_service.update_link(
            test_db, link.id, LinkUpdate(original_url="Example.org/New/", expires_at=new_expiry)
        )

        assert updated.original_url == "https://example.org/New"
        assert updated.expires_at == new_expiry
        assert updated.short_code == link.short_code

    @pytest.mark.asyncio
    async def test_update_link_rejects_bad_url(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com")
        with pytest.raises(InvalidURLError):
            await link_service.update_link(test_db, link.id, LinkUpdate(original_url="http://localhost/"))

    @pytest.mark.asyncio
    async def test_delete_link(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com")
        await link_service.delete_link(test_db, link.id)

        with pytest.raises(LinkNotFoundError):
            await link_service.delete_link(test_db, link.id)

    @pytest.mark.asyncio
    async def test_list_links(self, test_db, link_service, clock):
        for i in range(3):
            await link_service.create_link(test_db, f"https://example.com/{i}")
            clock.advance(minutes=1)

        page = await link_service.list_links(test_db, page=1, limit=2)
        assert page.total == 3
        assert page.total_pages == 2
        assert page.items[0].original_url == "https://example.com/2"

    @pytest.mark.asyncio
    async def test_list_links_invalid_pagination(self, test_db, link_service):
        with pytest.raises(InvalidPaginationError) as exc_info:
            await link_service.list_links(test_db, page=0, limit=500)
        assert len(exc_info.value.errors) == 2

    @pytest.mark.asyncio
    async def test_cleanup_expired_links(self, test_db, link_service, clock):
        await link_service.create_link(test_db, "https://example.com/a", expire_days=1)
        await link_service.create_link(test_db, "https://example.com/b", expire_days=30)
        clock.advance(days=2)

        assert await link_service.cleanup_expired_links(test_db) == 1
        assert await link_service.link_repository.count(test_db) == 1

    def test_suggest_slugs(self, link_service):
        assert link_service.suggest_slugs("sale", 3) == ["sale1", "sale2", "sale3"]


@pytest.mark.service
class TestLinkSettings:

    @pytest.mark.asyncio
    async def test_settings_created_with_defaults(self, test_db, link_service, config_repository):
        await config_repository.set_value(test_db, "enable_analytics_by_default", "0")
        await test_db.commit()
        link = await link_service.create_link(test_db, "https://example.com")

        row = await link_service.get_settings(test_db, link.id)

        assert row.link_id == link.id
        assert row.redirect_type == 302
        assert row.track_analytics is False

    @pytest.mark.asyncio
    async def test_invalid_redirect_type(self, test_db, link_service):
        link = await link_service.create_link(test_db, "https://example.com")
        with pytest.raises(InvalidInputError):
            await link_service.update_settings(test_db, link.id, {"redirect_type": 308})

    @pytest.mark.asyncio
    async def test_settings_of_missing_link(self, test_db, link_service):
        with pytest.raises(LinkNotFoundError):
            await link_service.get_settings(test_db, 77)
