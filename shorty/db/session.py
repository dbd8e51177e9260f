"""Session management for database operations.

Provides the FastAPI session dependency, a transaction decorator and a
transactional context manager for work that runs outside a request
(background tasks, scheduled jobs).
"""

import inspect
import logging
from contextlib import asynccontextmanager
from functools import wraps
from typing import AsyncContextManager, AsyncGenerator, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.db.base import get_session

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Zero-argument callable opening a committed-on-exit session
SessionScope = Callable[[], AsyncContextManager[AsyncSession]]


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session.

    Example:
        ```python
        @router.get("/links")
        async def list_links(db: AsyncSession = Depends(get_db)):
            return await repository.get_all(db)
        ```
    """
    async with get_session() as session:
        try:
            yield session
        except SQLAlchemyError:
            logger.exception("Database error occurred")
            await session.rollback()
            raise
        except Exception:
            await session.rollback()
            raise


def db_transaction(db_param_name: Optional[str] = None) -> Callable:
    """Decorator committing the wrapped coroutine's session on success.

    The session parameter is located by name, or else as the first
    parameter annotated ``AsyncSession``. Any exception rolls the session
    back and is re-raised.

    Args:
        db_param_name: Name of the session parameter, conventionally ``db``

    Raises:
        ValueError: If no session is found in the call arguments
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        parameters = inspect.signature(func).parameters
        db_param_pos = None
        db_param_key = None

        for i, (param_name, param) in enumerate(parameters.items()):
            if db_param_name is not None:
                if param_name == db_param_name:
                    db_param_pos, db_param_key = i, param_name
                    break
            elif param.annotation is AsyncSession:
                db_param_pos, db_param_key = i, param_name
                break

        if db_param_key is None:
            logger.warning(f"Unable to find database session parameter in function '{func.__name__}'")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            db = None
            if db_param_key is not None and db_param_key in kwargs:
                db = kwargs[db_param_key]
            elif db_param_pos is not None and len(args) > db_param_pos:
                db = args[db_param_pos]
            else:
                db = next(
                    (value for value in list(args) + list(kwargs.values()) if isinstance(value, AsyncSession)),
                    None,
                )

            if db is None:
                raise ValueError(
                    f"Database session not found in function arguments for '{func.__name__}'"
                )

            try:
                result = await func(*args, **kwargs)
                await db.commit()
                return result
            except Exception as e:
                await db.rollback()
                logger.debug(f"Transaction rolled back in '{func.__name__}': {e}")
                raise

        return wrapper
    return decorator


class SessionManager:
    """Session helpers for work running outside the request cycle."""

    @staticmethod
    @asynccontextmanager
    async def transaction_context() -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on clean exit and rolls back on error.

        Example:
            ```python
            async with SessionManager.transaction_context() as session:
                session.add(AccessLog(...))
            ```
        """
        async with get_session() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Transaction failed: {e}")
                raise
