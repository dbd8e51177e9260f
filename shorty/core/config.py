"""Application configuration module.

This module contains settings for the link shortener service,
loaded from environment variables with appropriate defaults.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationInfo, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shorty.utils.base62 import ALPHABET
from shorty.utils.slugs import SlugConfig

logger = logging.getLogger(__name__)

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class EnvironmentType(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LinkServiceConfig(BaseModel):
    """Explicit configuration handed to the link service at construction."""

    base_url: str = "https://shorty.dev"
    default_expire_days: Optional[int] = 365
    enable_custom_slug: bool = True
    enable_expiration: bool = True
    enable_analytics: bool = True
    min_slug_length: int = 4
    max_slug_length: int = 16
    max_url_length: int = 2048
    allow_unsafe_urls: bool = False
    default_redirect_type: int = 302


class Settings(BaseSettings):
    """Application settings loaded from environment variables with defaults.

    Settings are loaded from environment variables, with fallback to
    values in .env file if present, and finally to the default values
    specified here.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment setting
    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT

    # App Information
    APP_NAME: str = "Shorty"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Link shortening service with access analytics"

    # API Configuration
    BASE_URL: str = "https://shorty.dev"  # Prefix for generated short URLs
    API_PREFIX: str = "/api"
    DEBUG: bool = False

    # CORS settings
    CORS_ORIGINS: Union[List[str], str] = ["*"]

    # Link defaults
    DEFAULT_EXPIRE_DAYS: Optional[int] = 365  # None means never expire
    ENABLE_CUSTOM_SLUG: bool = True
    ENABLE_EXPIRATION: bool = True
    ENABLE_ANALYTICS: bool = True
    DEFAULT_REDIRECT_TYPE: int = 302

    # Slug generation
    SLUG_LENGTH: int = 6
    MIN_SLUG_LENGTH: int = 4
    MAX_SLUG_LENGTH: int = 16
    SLUG_MAX_RETRIES: int = 10
    SLUG_EXCLUDE_CHARS: str = ""  # Characters never used in generated slugs

    # URL validation
    MAX_URL_LENGTH: int = 2048
    ALLOW_UNSAFE_URLS: bool = False  # Skip SSRF checks (administrative override)

    # Database settings
    DATABASE_URL: Optional[str] = None  # Full async URL, overrides the Postgres parts
    POSTGRES_SERVER: str = Field(default="localhost", validation_alias="DATABASE_HOST")
    POSTGRES_PORT: int = Field(default=5432, validation_alias="DATABASE_PORT")
    POSTGRES_USER: str = Field(default="postgres", validation_alias="DATABASE_USER")
    POSTGRES_PASSWORD: str = Field(default="postgres", validation_alias="DATABASE_PASSWORD")
    POSTGRES_DB: str = Field(default="shorty", validation_alias="DATABASE_NAME")

    # Connection pool settings
    POSTGRES_POOL_SIZE: int = 20
    POSTGRES_POOL_MAX_OVERFLOW: int = 10
    POSTGRES_POOL_TIMEOUT: int = 30
    POSTGRES_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False

    # Redis settings (rate limiting backend)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_ADMIN_IPS: Union[List[str], str] = []  # IPs that bypass rate limits
    RATE_LIMIT_REDIS_CHECK_INTERVAL: int = 10  # Seconds between Redis health checks
    RATE_LIMIT_CONFIG: Dict[str, List[Dict[str, Any]]] = {
        r"^/api/": [
            {"second": 10, "group": "api"},
            {"group": "admin"},
        ],
        r"^/": [
            {"second": 30, "group": "public"},
            {"group": "admin"},
        ],
    }

    # Geo lookup
    GEO_LOOKUP_ENABLED: bool = True
    GEO_LOOKUP_URL: str = "http://ip-api.com/json/{ip}"
    GEO_LOOKUP_TIMEOUT: float = 2.0

    # Analytics retention defaults (overridden by system_config rows)
    ANALYTICS_RETENTION_DAYS: int = 365
    DAILY_STATS_RETENTION_DAYS: int = 1095
    MAX_VISITS_PER_MINUTE: int = 60

    # Logging configuration
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILENAME: str = "shorty.log"
    LOG_ROTATION: str = "10 MB"
    LOG_RETENTION: str = "7 days"
    LOG_FORMAT: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message}"
    LOG_JSON: bool = True
    ACCESS_LOG_ENABLED: bool = True

    # Cleanup settings
    CLEANUP_INTERVAL_HOURS: int = 24
    CLEANUP_START_ON_STARTUP: bool = False

    # Scheduler settings
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_JOBSTORE_URL: str = "sqlite:///jobs.sqlite"
    SCHEDULER_JOB_COALESCE: bool = True
    SCHEDULER_JOB_MAX_INSTANCES: int = 1
    SCHEDULER_MISFIRE_GRACE_TIME: int = 15 * 60

    # Validators
    @field_validator("DEFAULT_EXPIRE_DAYS", mode="before")
    def validate_expire_days(cls, v: Any) -> Optional[int]:
        """Convert empty string to None for DEFAULT_EXPIRE_DAYS."""
        if v == "" or v is None:
            return None
        try:
            return int(v)
        except (ValueError, TypeError):
            return None

    @field_validator("DEFAULT_REDIRECT_TYPE")
    def validate_redirect_type(cls, v: int) -> int:
        if v not in (301, 302, 307):
            raise ValueError("DEFAULT_REDIRECT_TYPE must be 301, 302 or 307")
        return v

    @field_validator("MAX_SLUG_LENGTH")
    def validate_slug_bounds(cls, v: int, info: ValidationInfo) -> int:
        minimum = info.data.get("MIN_SLUG_LENGTH", 1)
        if v < minimum:
            raise ValueError("MAX_SLUG_LENGTH must not be smaller than MIN_SLUG_LENGTH")
        return v

    @field_validator("CORS_ORIGINS", "RATE_LIMIT_ADMIN_IPS")
    def validate_list_or_string(cls, v: Union[List[str], str]) -> List[str]:
        """Convert comma-separated string to list if needed."""
        if isinstance(v, str):
            if not v.strip():
                return []
            if v == "*":
                return ["*"]
            return [item.strip() for item in v.split(",")]
        return v

    # Computed fields
    @computed_field
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct the SQLAlchemy database URI from settings or use override."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @computed_field
    def REDIS_URI(self) -> str:
        """Construct the Redis URI from settings."""
        password_part = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{password_part}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def link_service_config(self) -> LinkServiceConfig:
        """Build the link service configuration from these settings."""
        return LinkServiceConfig(
            base_url=self.BASE_URL,
            default_expire_days=self.DEFAULT_EXPIRE_DAYS,
            enable_custom_slug=self.ENABLE_CUSTOM_SLUG,
            enable_expiration=self.ENABLE_EXPIRATION,
            enable_analytics=self.ENABLE_ANALYTICS,
            min_slug_length=self.MIN_SLUG_LENGTH,
            max_slug_length=self.MAX_SLUG_LENGTH,
            max_url_length=self.MAX_URL_LENGTH,
            allow_unsafe_urls=self.ALLOW_UNSAFE_URLS,
            default_redirect_type=self.DEFAULT_REDIRECT_TYPE,
        )

    def slug_config(self) -> SlugConfig:
        """Build the slug generator configuration from these settings."""
        return SlugConfig(
            length=self.SLUG_LENGTH,
            min_length=self.MIN_SLUG_LENGTH,
            max_length=self.MAX_SLUG_LENGTH,
            max_retries=self.SLUG_MAX_RETRIES,
            charset=ALPHABET,
            exclude_chars=list(self.SLUG_EXCLUDE_CHARS),
        )

    def system_config_overrides(self) -> Dict[str, str]:
        """Seed values for the system_config keys mirrored in settings."""
        return {
            "analytics_retention_days": str(self.ANALYTICS_RETENTION_DAYS),
            "daily_stats_retention_days": str(self.DAILY_STATS_RETENTION_DAYS),
            "max_visits_per_minute": str(self.MAX_VISITS_PER_MINUTE),
            "default_redirect_type": str(self.DEFAULT_REDIRECT_TYPE),
            "enable_analytics_by_default": "1" if self.ENABLE_ANALYTICS else "0",
            "enable_geo_tracking": "1" if self.GEO_LOOKUP_ENABLED else "0",
            "cleanup_interval_hours": str(self.CLEANUP_INTERVAL_HOURS),
        }


# Create a singleton instance of the settings
settings = Settings()
