"""Repositories for per-link settings and system configuration."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.types import utc_now
from shorty.models.settings import LinkSettings, LinkSettingsUpdate, SystemConfig
from shorty.repositories.base import BaseRepository, DuplicateEntityError, RepositoryError

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


class LinkSettingsRepository(BaseRepository[LinkSettings, LinkSettings, LinkSettingsUpdate]):
    """Repository for the one-to-one LinkSettings rows."""

    def __init__(self):
        super().__init__(LinkSettings)

    async def get_by_link_id(self, db: AsyncSession, link_id: int) -> Optional[LinkSettings]:
        try:
            query = select(LinkSettings).where(LinkSettings.link_id == link_id)
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error retrieving link settings: {e}") from e

    async def get_or_create(
        self,
        db: AsyncSession,
        link_id: int,
        defaults: Optional[Dict[str, Any]] = None
    ) -> LinkSettings:
        """
        Return the settings row of a link, creating it with defaults first.

        Args:
            db: Database session
            link_id: Owning link
            defaults: Field values for a newly created row
        """
        existing = await self.get_by_link_id(db, link_id)
        if existing is not None:
            return existing

        try:
            return await self.create(db, {"link_id": link_id, **(defaults or {})})
        except DuplicateEntityError:
            existing = await self.get_by_link_id(db, link_id)
            if existing is None:
                raise
            return existing

    async def update_settings(
        self,
        db: AsyncSession,
        settings_row: LinkSettings,
        data: Dict[str, Any]
    ) -> LinkSettings:
        """Apply a partial update to a loaded settings row."""
        try:
            for key, value in data.items():
                setattr(settings_row, key, value)
            settings_row.updated_at = utc_now()
            await db.flush()
            await db.refresh(settings_row)
            return settings_row
        except Exception as e:
            raise RepositoryError(f"Error updating link settings: {e}") from e


class SystemConfigRepository(BaseRepository[SystemConfig, SystemConfig, SystemConfig]):
    """
    Repository for the SystemConfig key/value table.

    Values are stored as strings; :meth:`get_int` and :meth:`get_bool`
    fall back to the given default when a key is missing or malformed.
    """

    def __init__(self):
        super().__init__(SystemConfig)

    async def get_entry(self, db: AsyncSession, key: str) -> Optional[SystemConfig]:
        try:
            result = await db.execute(select(SystemConfig).where(SystemConfig.key == key))
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error retrieving config {key}: {e}") from e

    async def get_value(self, db: AsyncSession, key: str, default: Optional[str] = None) -> Optional[str]:
        entry = await self.get_entry(db, key)
        return entry.value if entry is not None else default

    async def get_int(self, db: AsyncSession, key: str, default: int) -> int:
        value = await self.get_value(db, key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"System config {key}={value!r} is not an integer, using {default}")
            return default

    async def get_bool(self, db: AsyncSession, key: str, default: bool) -> bool:
        value = await self.get_value(db, key)
        if value is None:
            return default
        return value.strip().lower() in TRUTHY

    async def list_all(self, db: AsyncSession) -> List[SystemConfig]:
        try:
            result = await db.execute(select(SystemConfig).order_by(SystemConfig.key))
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error listing system config: {e}") from e

    async def set_value(
        self,
        db: AsyncSession,
        key: str,
        value: str,
        description: Optional[str] = None
    ) -> SystemConfig:
        """Insert or overwrite one key."""
        entry = await self.get_entry(db, key)
        if entry is None:
            data = {"key": key, "value": value}
            if description is not None:
                data["description"] = description
            return await self.create(db, data)

        try:
            entry.value = value
            if description is not None:
                entry.description = description
            entry.updated_at = utc_now()
            await db.flush()
            await db.refresh(entry)
            return entry
        except Exception as e:
            raise RepositoryError(f"Error updating config {key}: {e}") from e

    async def seed_defaults(self, db: AsyncSession, defaults: Mapping[str, Tuple[str, str]]) -> int:
        """
        Insert the keys of ``defaults`` that are missing.

        Existing values are never overwritten.

        Returns:
            Number of keys inserted
        """
        existing = {entry.key for entry in await self.list_all(db)}
        inserted = 0
        for key, (value, description) in defaults.items():
            if key in existing:
                continue
            await self.create(db, {"key": key, "value": value, "description": description})
            inserted += 1
        if inserted:
            logger.info(f"Seeded {inserted} system config defaults")
        return inserted
