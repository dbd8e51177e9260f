"""Base repository implementation.

This module provides a generic BaseRepository class that follows the
Repository pattern, serving as a foundation for the table-specific
repositories that together make up the store interface.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

T = TypeVar("T", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class EntityNotFoundError(RepositoryError):
    """Exception raised when an entity cannot be found."""

    def __init__(self, model_type: Type[SQLModel], entity_id: Any):
        self.model_type = model_type
        self.entity_id = entity_id
        model_name = getattr(model_type, "__name__", "Entity")
        super().__init__(f"{model_name} with id {entity_id} not found")


class DuplicateEntityError(RepositoryError):
    """Exception raised when a unique constraint is violated."""

    def __init__(self, model_type: Type[SQLModel], field_name: str, value: Any):
        self.model_type = model_type
        self.field_name = field_name
        self.value = value
        model_name = getattr(model_type, "__name__", "Entity")
        super().__init__(f"{model_name} with {field_name}={value} already exists")


def _as_dict(data: Union[BaseModel, Dict[str, Any]], exclude_unset: bool = True) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data)


class BaseRepository(Generic[T, CreateSchemaType, UpdateSchemaType]):
    """
    Base repository implementing common CRUD operations for SQLModel entities.

    Every SQLAlchemy failure is re-raised as :class:`RepositoryError`, and
    unique constraint violations on insert as :class:`DuplicateEntityError`.

    Type parameters:
        T: The SQLModel type this repository manages
        CreateSchemaType: The model type for creation operations
        UpdateSchemaType: The model type for update operations
    """

    def __init__(self, model_type: Type[T]):
        self.model_type = model_type

    async def get_by_id(self, db: AsyncSession, id: Any) -> Optional[T]:
        """
        Get an entity by its ID.

        Args:
            db: Database session
            id: Entity ID

        Returns:
            The entity if found, None otherwise
        """
        try:
            return await db.get(self.model_type, id)
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving {self.model_type.__name__} with id {id}: {e}")
            raise RepositoryError(f"Database error retrieving entity: {e}") from e

    async def get_all(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 100,
        order_by: Optional[Any] = None
    ) -> List[T]:
        """
        Get entities with offset pagination.

        Args:
            db: Database session
            skip: Number of records to skip
            limit: Maximum number of records to return
            order_by: SQLAlchemy column expression to order by
        """
        try:
            query = select(self.model_type)
            if order_by is not None:
                query = query.order_by(order_by)
            query = query.offset(skip).limit(limit)

            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving {self.model_type.__name__} list: {e}")
            raise RepositoryError(f"Database error retrieving entities: {e}") from e

    async def create(self, db: AsyncSession, data: Union[CreateSchemaType, Dict[str, Any]]) -> T:
        """
        Create a new entity.

        The session is rolled back when the insert fails, so callers must
        not rely on earlier unflushed work in the same transaction.

        Raises:
            DuplicateEntityError: On a unique constraint violation
            RepositoryError: On other database errors
        """
        entity = self.model_type(**_as_dict(data))
        try:
            db.add(entity)
            await db.flush()
            await db.refresh(entity)
            return entity
        except IntegrityError as e:
            await db.rollback()
            logger.info(f"Integrity violation creating {self.model_type.__name__}: {e.orig}")
            raise DuplicateEntityError(self.model_type, "unique key", str(e.orig)) from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model_type.__name__}: {e}")
            await db.rollback()
            raise RepositoryError(f"Database error creating entity: {e}") from e

    async def update(
        self,
        db: AsyncSession,
        id: Any,
        data: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> Optional[T]:
        """
        Update an existing entity.

        Returns:
            The updated entity, or None if not found
        """
        try:
            entity = await self.get_by_id(db, id)
            if entity is None:
                return None

            for key, value in _as_dict(data).items():
                setattr(entity, key, value)

            await db.flush()
            await db.refresh(entity)
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model_type.__name__} with id {id}: {e}")
            raise RepositoryError(f"Database error updating entity: {e}") from e

    async def delete(self, db: AsyncSession, id: Any) -> bool:
        """
        Delete an entity by ID.

        Returns:
            True if entity was deleted, False if not found
        """
        try:
            entity = await self.get_by_id(db, id)
            if entity is None:
                return False

            await db.delete(entity)
            await db.flush()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.model_type.__name__} with id {id}: {e}")
            raise RepositoryError(f"Database error deleting entity: {e}") from e

    async def count(self, db: AsyncSession, *conditions) -> int:
        """Count entities, optionally filtered by SQLAlchemy conditions."""
        try:
            query = select(func.count()).select_from(self.model_type)
            if conditions:
                query = query.where(*conditions)
            result = await db.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting {self.model_type.__name__} records: {e}")
            raise RepositoryError(f"Database error counting entities: {e}") from e

    async def exists(self, db: AsyncSession, **kwargs) -> bool:
        """
        Check if an entity exists with the given field values.

        Raises:
            ValueError: If no filters are given
            RepositoryError: On database errors
        """
        if not kwargs:
            raise ValueError("No conditions provided for exists check")

        conditions = [getattr(self.model_type, field) == value for field, value in kwargs.items()]
        return await self.count(db, *conditions) > 0

    async def bulk_delete(self, db: AsyncSession, *conditions) -> int:
        """
        Delete every entity matching the given SQLAlchemy conditions.

        Returns:
            Number of rows deleted
        """
        if not conditions:
            raise ValueError("No conditions provided for bulk delete")

        try:
            stmt = delete(self.model_type).where(*conditions)
            result = await db.execute(stmt)
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error bulk deleting {self.model_type.__name__} records: {e}", exc_info=True)
            raise RepositoryError(f"Database error bulk deleting entities: {e}") from e
