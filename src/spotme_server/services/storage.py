"""Mapping of database failures onto StorageError."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.errors import StorageError

logger = structlog.get_logger()


@asynccontextmanager
async def storage_errors(
    session: AsyncSession, operation: str, **context: Any
) -> AsyncIterator[None]:
    """Roll back and raise StorageError when a database call fails.

    Domain errors raised inside the block pass through untouched.

    Usage:
        async with storage_errors(self.session, "deactivate user", name=name):
            await self.session.execute(stmt)
            await self.session.commit()
    """
    try:
        yield
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Storage operation failed", operation=operation, error=str(e), **context)
        raise StorageError(f"Failed to {operation}") from e
