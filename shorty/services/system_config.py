"""System configuration service: seeding and validated administrative writes."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.session import db_transaction
from shorty.models.settings import REDIRECT_TYPES, SYSTEM_CONFIG_DEFAULTS, SystemConfig
from shorty.repositories.settings_repository import SystemConfigRepository
from shorty.services.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

INTEGER_KEYS = {
    "analytics_retention_days",
    "daily_stats_retention_days",
    "max_visits_per_minute",
    "default_redirect_type",
    "cleanup_interval_hours",
}
BOOLEAN_VALUES = {"0", "1", "true", "false", "yes", "no", "on", "off"}


class SystemConfigService:
    """Service over the SystemConfig key/value table."""

    def __init__(self, config_repository: SystemConfigRepository):
        self.config_repository = config_repository

    @db_transaction(db_param_name="db")
    async def seed_defaults(self, db: AsyncSession, overrides: Optional[Dict[str, str]] = None) -> int:
        """
        Insert missing default keys; existing values are kept.

        Args:
            db: Database session
            overrides: Values replacing the built-in defaults of some keys
        """
        defaults = {
            key: ((overrides or {}).get(key, value), description)
            for key, (value, description) in SYSTEM_CONFIG_DEFAULTS.items()
        }
        return await self.config_repository.seed_defaults(db, defaults)

    async def list_config(self, db: AsyncSession) -> List[SystemConfig]:
        return await self.config_repository.list_all(db)

    def _validate(self, key: str, value: str) -> str:
        if key not in SYSTEM_CONFIG_DEFAULTS:
            raise InvalidInputError("Unknown config key", [f"'{key}' is not a known configuration key"])

        value = value.strip()
        if key in INTEGER_KEYS:
            try:
                number = int(value)
            except ValueError:
                raise InvalidInputError("Invalid config value", [f"'{key}' must be an integer"])
            if number < 1:
                raise InvalidInputError("Invalid config value", [f"'{key}' must be positive"])
            if key == "default_redirect_type" and number not in REDIRECT_TYPES:
                raise InvalidInputError(
                    "Invalid config value",
                    [f"'{key}' must be one of {', '.join(str(code) for code in REDIRECT_TYPES)}"],
                )
            return str(number)

        if value.lower() not in BOOLEAN_VALUES:
            raise InvalidInputError("Invalid config value", [f"'{key}' must be a boolean flag"])
        return value.lower()

    @db_transaction(db_param_name="db")
    async def set_config(self, db: AsyncSession, key: str, value: str) -> SystemConfig:
        """
        Validate and store one configuration value.

        Raises:
            InvalidInputError: On an unknown key or a malformed value
        """
        value = self._validate(key, value)
        entry = await self.config_repository.set_value(db, key, value, description=SYSTEM_CONFIG_DEFAULTS[key][1])
        logger.info(f"System config '{key}' set to '{value}'")
        return entry
