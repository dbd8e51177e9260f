"""Link service for the link shortener.

This module contains the LinkService class: link creation with slug
generation and collision handling, the resolution state machine used by
the redirect endpoint, and link/settings management.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shorty.core.config import LinkServiceConfig
from shorty.db.session import db_transaction
from shorty.db.types import as_utc, utc_now
from shorty.models.link import Link, LinkUpdate
from shorty.models.settings import REDIRECT_TYPES, LinkSettings
from shorty.repositories.base import DuplicateEntityError, RepositoryError
from shorty.repositories.link_repository import LinkRepository
from shorty.repositories.settings_repository import LinkSettingsRepository, SystemConfigRepository
from shorty.services.exceptions import (
    CustomSlugValidationError,
    InvalidInputError,
    InvalidPaginationError,
    InvalidURLError,
    LinkNotFoundError,
    SlugAlreadyExistsError,
    SlugGenerationError,
)
from shorty.utils.slugs import SlugConfig, SlugGenerator, validate_custom_slug
from shorty.utils.urls import validate_url

logger = logging.getLogger(__name__)

# Public short code format accepted by the redirect endpoint
CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{3,16}$")

MAX_PAGE_SIZE = 100

Clock = Callable[[], datetime]


def is_valid_code_format(code: Optional[str]) -> bool:
    """3-16 alphanumeric characters, not all digits."""
    return bool(code) and CODE_PATTERN.match(code) is not None and not code.isdigit()


class LinkState(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ACTIVE = "active"


@dataclass
class Resolution:
    """Outcome of resolving a short code."""

    state: LinkState
    link: Optional[Link] = None
    settings: Optional[LinkSettings] = None
    redirect_type: int = 302

    @property
    def is_active(self) -> bool:
        return self.state is LinkState.ACTIVE


@dataclass
class LinkPage:
    items: List[Link]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


class LinkService:
    """
    Service for link creation, resolution and management.

    Args:
        link_repository: Store for links
        settings_repository: Store for per-link settings
        config_repository: Store for system configuration
        config: Link defaults (expiry, custom slugs, URL limits)
        slug_config: Slug generator configuration
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        link_repository: LinkRepository,
        settings_repository: LinkSettingsRepository,
        config_repository: SystemConfigRepository,
        config: Optional[LinkServiceConfig] = None,
        slug_config: Optional[SlugConfig] = None,
        clock: Clock = utc_now,
    ):
        self.link_repository = link_repository
        self.settings_repository = settings_repository
        self.config_repository = config_repository
        self.config = config or LinkServiceConfig()
        self.slug_config = slug_config or SlugConfig(
            min_length=self.config.min_slug_length,
            max_length=self.config.max_slug_length,
        )
        self.slug_generator = SlugGenerator(self.slug_config)
        self.clock = clock

    def short_url(self, link: Link) -> str:
        return f"{self.config.base_url.rstrip('/')}/{link.short_code}"

    # Resolution

    async def resolve(self, db: AsyncSession, short_code: str, track: bool = True) -> Resolution:
        """
        Resolve a short code to NOT_FOUND, EXPIRED or ACTIVE.

        On ACTIVE with ``track`` set, the access counter is incremented.
        A failed increment is logged and rolled back; the resolution still
        succeeds.

        Args:
            db: Database session
            short_code: Code from the request path
            track: Whether to count this access

        Returns:
            Resolution: state, link, settings and redirect status
        """
        if not is_valid_code_format(short_code):
            return Resolution(state=LinkState.NOT_FOUND)

        link = await self.link_repository.get_by_short_code(db, short_code)
        if link is None:
            return Resolution(state=LinkState.NOT_FOUND)

        if link.is_expired(self.clock()):
            return Resolution(state=LinkState.EXPIRED, link=link)

        settings_row = await self.settings_repository.get_by_link_id(db, link.id)
        if settings_row is not None:
            redirect_type = settings_row.redirect_type
        else:
            redirect_type = await self.config_repository.get_int(
                db, "default_redirect_type", self.config.default_redirect_type
            )
            if redirect_type not in REDIRECT_TYPES:
                redirect_type = self.config.default_redirect_type

        if track:
            try:
                await self.link_repository.increment_access_count(db, link.id)
            except RepositoryError as e:
                logger.error(f"Failed to increment access count for '{short_code}': {e}")
                # Detach first so the loaded link survives the rollback unexpired
                db.expunge_all()
                await db.rollback()

        return Resolution(
            state=LinkState.ACTIVE,
            link=link,
            settings=settings_row,
            redirect_type=redirect_type,
        )

    async def get_link_raw(self, db: AsyncSession, short_code: str) -> Optional[Link]:
        """Look up a link by code without checking expiry."""
        return await self.link_repository.get_by_short_code(db, short_code)

    # Creation

    def _compute_expiry(
        self,
        now: datetime,
        expires_at: Optional[datetime],
        expire_days: Optional[int]
    ) -> Optional[datetime]:
        if not self.config.enable_expiration:
            return None
        if expires_at is not None:
            return as_utc(expires_at)
        if expire_days is not None:
            return now + timedelta(days=expire_days)
        if self.config.default_expire_days:
            return now + timedelta(days=self.config.default_expire_days)
        return None

    @db_transaction(db_param_name="db")
    async def create_link(
        self,
        db: AsyncSession,
        original_url: str,
        custom_slug: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        expire_days: Optional[int] = None
    ) -> Link:
        """
        Create a short link, or reuse an existing one for the same URL.

        Args:
            db: Database session
            original_url: Destination submitted by the client
            custom_slug: Requested short code; disables reuse by URL
            expires_at: Explicit expiry, takes priority over ``expire_days``
            expire_days: Days from now until expiry

        Returns:
            Link: The created or reused link

        Raises:
            InvalidURLError: If the URL is malformed or unsafe
            InvalidInputError: If custom slugs are disabled
            CustomSlugValidationError: If the custom slug is malformed
            SlugAlreadyExistsError: If the custom slug is taken
            SlugGenerationError: If no free code was found within the retry budget
        """
        validation = validate_url(
            str(original_url),
            max_length=self.config.max_url_length,
            allow_unsafe=self.config.allow_unsafe_urls,
        )
        if not validation.is_valid:
            raise InvalidURLError(validation.errors)
        url = validation.normalized_url

        now = self.clock()
        custom_slug = custom_slug.strip() if custom_slug else None

        if not custom_slug:
            existing = await self.link_repository.get_by_original_url(db, url, now=now)
            if existing is not None:
                logger.info(f"Reusing link '{existing.short_code}' for {url}")
                return existing

        data: Dict[str, Any] = {
            "original_url": url,
            "expires_at": self._compute_expiry(now, expires_at, expire_days),
            "created_at": now,
        }

        if custom_slug:
            return await self._create_with_custom_slug(db, custom_slug, data)
        return await self._create_with_generated_slug(db, data)

    async def _create_with_custom_slug(self, db: AsyncSession, custom_slug: str, data: Dict[str, Any]) -> Link:
        if not self.config.enable_custom_slug:
            raise InvalidInputError("Custom slugs are disabled")

        check = validate_custom_slug(custom_slug, self.slug_config)
        if not check.is_valid:
            raise CustomSlugValidationError(check.errors)

        if await self.link_repository.code_exists(db, check.slug):
            raise SlugAlreadyExistsError(check.slug)

        try:
            link = await self.link_repository.create_link(db, {**data, "short_code": check.slug})
        except DuplicateEntityError:
            raise SlugAlreadyExistsError(check.slug)

        logger.info(f"Created link '{link.short_code}' with custom slug")
        return link

    async def _create_with_generated_slug(self, db: AsyncSession, data: Dict[str, Any]) -> Link:
        created: List[Link] = []

        async def claim(candidate: str) -> bool:
            # Taken when it exists already or the insert hits the unique constraint
            if await self.link_repository.code_exists(db, candidate):
                return True
            try:
                created.append(await self.link_repository.create_link(db, {**data, "short_code": candidate}))
            except DuplicateEntityError:
                logger.info(f"Short code '{candidate}' was claimed concurrently, retrying")
                return True
            return False

        result = await self.slug_generator.generate(claim)
        if not result.success or not created:
            logger.error(f"Slug generation failed after {result.attempts} attempts: {result.error}")
            raise SlugGenerationError(result.attempts, result.error)

        link = created[0]
        logger.info(f"Created link '{link.short_code}' after {result.attempts} attempt(s)")
        return link

    # Management

    async def get_link(self, db: AsyncSession, link_id: int) -> Link:
        link = await self.link_repository.get_by_id(db, link_id)
        if link is None:
            raise LinkNotFoundError(f"Link with id {link_id} not found")
        return link

    async def get_link_by_code(self, db: AsyncSession, short_code: str) -> Link:
        link = await self.get_link_raw(db, short_code)
        if link is None:
            raise LinkNotFoundError(f"Link with code '{short_code}' not found")
        return link

    @db_transaction(db_param_name="db")
    async def update_link(self, db: AsyncSession, link_id: int, update: LinkUpdate) -> Link:
        """
        Change a link's destination or expiry.

        The new URL goes through the same validation and normalization as
        on creation. The short code never changes.

        Raises:
            LinkNotFoundError: If the link does not exist
            InvalidURLError: If the new URL is invalid
        """
        link = await self.get_link(db, link_id)
        changes = update.model_dump(exclude_unset=True)

        if changes.get("original_url") is not None:
            validation = validate_url(
                str(changes["original_url"]),
                max_length=self.config.max_url_length,
                allow_unsafe=self.config.allow_unsafe_urls,
            )
            if not validation.is_valid:
                raise InvalidURLError(validation.errors)
            changes["original_url"] = validation.normalized_url
        else:
            changes.pop("original_url", None)

        if "expires_at" in changes:
            changes["expires_at"] = as_utc(changes["expires_at"])

        updated = await self.link_repository.update(db, link.id, changes)
        if updated is None:
            raise LinkNotFoundError(f"Link with id {link_id} not found")
        return updated

    @db_transaction(db_param_name="db")
    async def delete_link(self, db: AsyncSession, link_id: int) -> None:
        """Delete a link with its logs, stats and settings."""
        if not await self.link_repository.delete(db, link_id):
            raise LinkNotFoundError(f"Link with id {link_id} not found")
        logger.info(f"Deleted link {link_id}")

    async def list_links(self, db: AsyncSession, page: int = 1, limit: int = 20) -> LinkPage:
        """
        Paginate links, newest first.

        Raises:
            InvalidPaginationError: If page < 1 or limit is outside 1..100
        """
        errors = []
        if page < 1:
            errors.append("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            errors.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if errors:
            raise InvalidPaginationError("Invalid pagination", errors)

        items, total = await self.link_repository.list_links(db, limit=limit, offset=(page - 1) * limit)
        return LinkPage(items=items, total=total, page=page, limit=limit)

    def suggest_slugs(self, base: Optional[str] = None, count: int = 5) -> List[str]:
        return self.slug_generator.suggestions(base, count)

    @db_transaction(db_param_name="db")
    async def cleanup_expired_links(self, db: AsyncSession) -> int:
        """Delete every expired link; returns how many were removed."""
        deleted = await self.link_repository.delete_expired_links(db, now=self.clock())
        logger.info(f"Expired link cleanup removed {deleted} links")
        return deleted

    # Settings

    async def _settings_defaults(self, db: AsyncSession) -> Dict[str, Any]:
        redirect_type = await self.config_repository.get_int(
            db, "default_redirect_type", self.config.default_redirect_type
        )
        track_analytics = await self.config_repository.get_bool(
            db, "enable_analytics_by_default", self.config.enable_analytics
        )
        if redirect_type not in REDIRECT_TYPES:
            redirect_type = self.config.default_redirect_type
        return {"redirect_type": redirect_type, "track_analytics": track_analytics}

    @db_transaction(db_param_name="db")
    async def get_settings(self, db: AsyncSession, link_id: int) -> LinkSettings:
        """Settings of a link, created with defaults on first access."""
        link = await self.get_link(db, link_id)
        return await self.settings_repository.get_or_create(db, link.id, await self._settings_defaults(db))

    @db_transaction(db_param_name="db")
    async def update_settings(self, db: AsyncSession, link_id: int, data: Dict[str, Any]) -> LinkSettings:
        """
        Partially update a link's settings.

        Raises:
            LinkNotFoundError: If the link does not exist
            InvalidInputError: If ``redirect_type`` is not 301, 302 or 307
        """
        redirect_type = data.get("redirect_type")
        if redirect_type is not None and redirect_type not in REDIRECT_TYPES:
            raise InvalidInputError(
                "Invalid redirect type",
                [f"redirect_type must be one of {', '.join(str(code) for code in REDIRECT_TYPES)}"],
            )
        if "max_visits" in data and data["max_visits"] is not None and data["max_visits"] < 1:
            raise InvalidInputError("Invalid max visits", ["max_visits must be at least 1"])

        link = await self.get_link(db, link_id)
        settings_row = await self.settings_repository.get_or_create(
            db, link.id, await self._settings_defaults(db)
        )
        changes = {key: value for key, value in data.items() if value is not None or key in ("password", "max_visits")}
        return await self.settings_repository.update_settings(db, settings_row, changes)
