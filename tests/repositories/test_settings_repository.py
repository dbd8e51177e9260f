"""Tests for the link settings and system config repositories."""

import pytest

from tests.utils import create_test_link


@pytest.mark.repository
class TestLinkSettingsRepository:

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, test_db, settings_repository):
        link = await create_test_link(test_db)
        assert await settings_repository.get_by_link_id(test_db, link.id) is None

        created = await settings_repository.get_or_create(test_db, link.id, {"redirect_type": 301})
        again = await settings_repository.get_or_create(test_db, link.id, {"redirect_type": 307})
        await test_db.commit()

        assert created.id == again.id
        assert again.redirect_type == 301
        assert again.track_analytics is True
        assert again.blocked_ips == []

    @pytest.mark.asyncio
    async def test_update_settings(self, test_db, settings_repository):
        link = await create_test_link(test_db)
        row = await settings_repository.get_or_create(test_db, link.id)

        updated = await settings_repository.update_settings(
            test_db, row, {"track_device": False, "blocked_countries": ["XX"]}
        )
        await test_db.commit()

        assert updated.track_device is False
        assert updated.blocked_countries == ["XX"]


@pytest.mark.repository
class TestSystemConfigRepository:

    @pytest.mark.asyncio
    async def test_typed_getters_fall_back(self, test_db, config_repository):
        assert await config_repository.get_int(test_db, "missing", 7) == 7
        assert await config_repository.get_bool(test_db, "missing", True) is True

        await config_repository.set_value(test_db, "analytics_retention_days", "abc")
        await config_repository.set_value(test_db, "enable_geo_tracking", "off")
        await test_db.commit()

        assert await config_repository.get_int(test_db, "analytics_retention_days", 365) == 365
        assert await config_repository.get_bool(test_db, "enable_geo_tracking", True) is False

    @pytest.mark.asyncio
    async def test_set_value_overwrites(self, test_db, config_repository):
        await config_repository.set_value(test_db, "max_visits_per_minute", "10", description="ceiling")
        entry = await config_repository.set_value(test_db, "max_visits_per_minute", "20")
        await test_db.commit()

        assert entry.value == "20"
        assert entry.description == "ceiling"
        assert await config_repository.get_int(test_db, "max_visits_per_minute", 60) == 20

    @pytest.mark.asyncio
    async def test_seed_defaults_keeps_existing(self, test_db, config_repository):
        await config_repository.set_value(test_db, "a", "custom")
        inserted = await config_repository.seed_defaults(test_db, {"a": ("1", "first"), "b": ("2", "second")})
        await test_db.commit()

        assert inserted == 1
        assert await config_repository.get_value(test_db, "a") == "custom"
        assert [entry.key for entry in await config_repository.list_all(test_db)] == ["a", "b"]
