"""Link repository.

Store operations on the ``links`` table: creation, lookups by code, id and
destination URL, the atomic access counter, pagination and expiry cleanup.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import and_, or_

from shorty.db.types import utc_now
from shorty.models.link import Link, LinkCreate, LinkUpdate
from shorty.repositories.base import BaseRepository, DuplicateEntityError, RepositoryError

logger = logging.getLogger(__name__)


class LinkRepository(BaseRepository[Link, LinkCreate, LinkUpdate]):
    """
    Repository for Link model database operations.

    The ``short_code`` unique constraint is the single source of truth for
    code uniqueness; :meth:`code_exists` is only a cheap pre-check.
    """

    def __init__(self):
        super().__init__(Link)

    async def create_link(self, db: AsyncSession, data: Union[LinkCreate, Dict[str, Any]]) -> Link:
        """
        Insert a new link.

        Args:
            db: Database session
            data: Link fields (``original_url``, ``short_code``, ``expires_at``)

        Returns:
            The created Link with its id assigned

        Raises:
            DuplicateEntityError: If the short code is already taken
            RepositoryError: On other database errors
        """
        short_code = data.short_code if isinstance(data, LinkCreate) else data.get("short_code")
        try:
            return await self.create(db, data)
        except DuplicateEntityError as e:
            raise DuplicateEntityError(self.model_type, "short_code", short_code) from e

    async def get_by_short_code(self, db: AsyncSession, short_code: str) -> Optional[Link]:
        """
        Find a link by its short code, expired or not.

        Raises:
            RepositoryError: On database errors
        """
        try:
            query = select(Link).where(Link.short_code == short_code)
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error retrieving link by short code: {e}") from e

    async def get_by_original_url(
        self,
        db: AsyncSession,
        original_url: str,
        now: Optional[datetime] = None
    ) -> Optional[Link]:
        """
        Find the most recent non-expired link for a canonical URL.

        Args:
            db: Database session
            original_url: Normalized destination URL
            now: Reference time for the expiry filter

        Returns:
            The newest matching Link, or None
        """
        now = now or utc_now()
        try:
            query = (
                select(Link)
                .where(
                    and_(
                        Link.original_url == original_url,
                        or_(Link.expires_at.is_(None), Link.expires_at >= now),
                    )
                )
                .order_by(desc(Link.created_at), desc(Link.id))
                .limit(1)
            )
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error retrieving link by URL: {e}") from e

    async def increment_access_count(self, db: AsyncSession, link_id: int) -> Optional[int]:
        """
        Atomically add one to a link's access counter.

        A single UPDATE statement is issued, so concurrent redirects never
        lose increments.

        Returns:
            The new counter value, or None if the link does not exist

        Raises:
            RepositoryError: On database errors
        """
        try:
            stmt = (
                update(Link)
                .where(Link.id == link_id)
                .values(access_count=Link.access_count + 1)
                .returning(Link.access_count)
            )
            result = await db.execute(stmt)
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error incrementing access count: {e}") from e

    async def code_exists(self, db: AsyncSession, short_code: str) -> bool:
        """Check whether a short code is already taken."""
        return await self.exists(db, short_code=short_code)

    async def list_links(self, db: AsyncSession, limit: int, offset: int) -> Tuple[List[Link], int]:
        """
        Page through links, newest first.

        Returns:
            Tuple of (links on this page, total link count)
        """
        items = await self.get_all(
            db,
            skip=offset,
            limit=limit,
            order_by=desc(Link.created_at),
        )
        total = await self.count(db)
        return items, total

    async def get_top_links(self, db: AsyncSession, limit: int = 10) -> List[Link]:
        """Links ordered by lifetime access count."""
        try:
            query = select(Link).order_by(desc(Link.access_count), Link.id).limit(limit)
            result = await db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error retrieving top links: {e}") from e

    async def total_access_count(self, db: AsyncSession) -> int:
        """Sum of every link's access counter."""
        try:
            result = await db.execute(select(func.coalesce(func.sum(Link.access_count), 0)))
            return int(result.scalar_one())
        except Exception as e:
            raise RepositoryError(f"Error summing access counts: {e}") from e

    async def get_by_ids(self, db: AsyncSession, link_ids: List[int]) -> Dict[int, Link]:
        """Fetch several links at once, keyed by id."""
        if not link_ids:
            return {}
        try:
            result = await db.execute(select(Link).where(Link.id.in_(link_ids)))
            return {link.id: link for link in result.scalars().all()}
        except Exception as e:
            raise RepositoryError(f"Error retrieving links by id: {e}") from e

    async def delete_expired_links(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Delete every link whose expiry has passed.

        Dependent access logs, daily stats and settings go with them through
        ON DELETE CASCADE.

        Returns:
            Number of links deleted
        """
        now = now or utc_now()
        deleted = await self.bulk_delete(
            db,
            Link.expires_at.is_not(None),
            Link.expires_at < now,
        )
        if deleted:
            logger.info(f"Deleted {deleted} expired links")
        return deleted
