"""Admin tracking control.

The ``is_tracking`` flag records admin intent only. Participant clients do
not read it and keep sampling on their own schedule until the participant
stops.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.auth import AdminPrincipal
from spotme_server.core.errors import AuthError, NotFoundError, ValidationError
from spotme_server.core.timestamps import isoformat_utc, utc_now
from spotme_server.models.user import User
from spotme_server.services.storage import storage_errors

logger = structlog.get_logger()


@dataclass
class TrackingChange:
    """Result of a start/stop action.

    Attributes:
        is_tracking: The flag value that was written
        actor: Admin name recorded in the audit fields
        changed_at: Audit instant
        count: Number of users affected
        user_name: Target user for per-user actions, None for bulk actions
    """

    is_tracking: bool
    actor: str
    changed_at: datetime
    count: int
    user_name: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Response body for the tracking endpoints."""
        verb = "Started" if self.is_tracking else "Stopped"
        target = f"user: {self.user_name}" if self.user_name else "all users"
        return {
            "success": True,
            "message": f"{verb} tracking for {target}",
            "isTracking": self.is_tracking,
            "by": self.actor,
            "count": self.count,
            "timestamp": isoformat_utc(self.changed_at),
        }


class AdminTrackingController:
    """Applies per-user and bulk tracking state transitions with an audit trail.

    Starting writes the started/started-by pair, stopping writes the
    stopped/stopped-by pair; neither clears the other.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize controller.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="tracking")

    async def start_tracking(self, user_name: str, admin: AdminPrincipal | None) -> TrackingChange:
        """Flag one active user as tracked."""
        return await self._set_tracking(admin, enabled=True, user_name=user_name)

    async def stop_tracking(self, user_name: str, admin: AdminPrincipal | None) -> TrackingChange:
        """Clear the tracking flag of one active user."""
        return await self._set_tracking(admin, enabled=False, user_name=user_name)

    async def start_all_tracking(self, admin: AdminPrincipal | None) -> TrackingChange:
        """Flag every active user as tracked."""
        return await self._set_tracking(admin, enabled=True)

    async def stop_all_tracking(self, admin: AdminPrincipal | None) -> TrackingChange:
        """Clear the tracking flag of every active user."""
        return await self._set_tracking(admin, enabled=False)

    async def _set_tracking(
        self,
        admin: AdminPrincipal | None,
        enabled: bool,
        user_name: str | None = None,
    ) -> TrackingChange:
        if admin is None:
            raise AuthError("Admin authentication required")
        if user_name is not None and not user_name.strip():
            raise ValidationError("Username is required")

        now = utc_now()
        values: dict[str, object] = {"is_tracking": enabled, "last_updated": now}
        if enabled:
            values.update(admin_tracking_started=now, admin_tracking_started_by=admin.actor_name)
        else:
            values.update(admin_tracking_stopped=now, admin_tracking_stopped_by=admin.actor_name)

        stmt = update(User).where(User.is_active == True)  # noqa: E712
        if user_name is not None:
            stmt = stmt.where(User.name == user_name)

        async with storage_errors(self.session, "update tracking state", name=user_name):
            result = await self.session.execute(stmt.values(**values))
            count = result.rowcount or 0
            if user_name is not None and count == 0:
                await self.session.rollback()
                raise NotFoundError(f"User {user_name} not found")
            await self.session.commit()

        self.logger.info(
            "Tracking state changed",
            user_name=user_name or "*",
            is_tracking=enabled,
            by=admin.actor_name,
            count=count,
        )
        return TrackingChange(
            is_tracking=enabled,
            actor=admin.actor_name,
            changed_at=now,
            count=count,
            user_name=user_name,
        )
