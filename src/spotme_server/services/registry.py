"""User registry: registration and soft deletion of tracked users."""

from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.errors import ConflictError, ValidationError
from spotme_server.core.timestamps import normalize_instant
from spotme_server.models.user import User
from spotme_server.services.storage import storage_errors

logger = structlog.get_logger()


class UserRegistry:
    """Maintains at most one active user per display name.

    Names are case-sensitive. Deactivated users keep their row (and their
    location history) but no longer block the name.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize registry.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="registry")

    async def get_active_user(self, name: str) -> User | None:
        """Return the active user holding ``name``, if any."""
        result = await self.session.execute(
            select(User).where(User.name == name, User.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def register_user(
        self,
        name: str,
        user_id: str | None = None,
        last_updated: Any = None,
    ) -> User:
        """Create an active user.

        Args:
            name: Display name (surrounding whitespace is ignored)
            user_id: Optional client supplied identifier
            last_updated: Optional client timestamp, normalized like any other

        Returns:
            The created user

        Raises:
            ValidationError: If the name is empty or contains a slash
            ConflictError: If an active user already has this name
            StorageError: If the database fails
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        if "/" in name:
            raise ValidationError("Name must not contain '/'")

        async with storage_errors(self.session, "create user", name=name):
            if await self.get_active_user(name):
                raise ConflictError(f"User with name {name} already exists")

            user = User(
                name=name,
                is_active=True,
                is_tracking=False,
                last_updated=normalize_instant(last_updated),
            )
            if user_id:
                user.id = user_id
            self.session.add(user)

            try:
                await self.session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent registration, or the id is taken
                await self.session.rollback()
                raise ConflictError(f"User with name {name} already exists") from e

        self.logger.info("User registered", name=name, user_id=user.id)
        return user

    async def deactivate_user(self, name: str) -> bool:
        """Soft-delete a user and force tracking off.

        A missing or already inactive user is a no-op.

        Returns:
            True if an active user was deactivated
        """
        async with storage_errors(self.session, "deactivate user", name=name):
            result = await self.session.execute(
                update(User)
                .where(User.name == name, User.is_active == True)  # noqa: E712
                .values(is_active=False, is_tracking=False)
            )
            await self.session.commit()

        changed = (result.rowcount or 0) > 0
        self.logger.info("User deactivated", name=name, changed=changed)
        return changed

    async def deactivate_all(self) -> int:
        """Deactivate every active user. Location history is kept.

        Returns:
            Number of users deactivated
        """
        async with storage_errors(self.session, "deactivate all users"):
            result = await self.session.execute(
                update(User)
                .where(User.is_active == True)  # noqa: E712
                .values(is_active=False, is_tracking=False)
            )
            await self.session.commit()

        count = result.rowcount or 0
        self.logger.info("All users deactivated", count=count)
        return count

    async def count_active(self) -> int:
        """Number of active users."""
        async with storage_errors(self.session, "count users"):
            result = await self.session.execute(
                select(func.count(User.id)).where(User.is_active == True)  # noqa: E712
            )
        return result.scalar() or 0
