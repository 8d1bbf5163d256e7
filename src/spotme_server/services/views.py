"""Read models for the admin console: active users with their latest location."""

from typing import Any

import structlog
from sqlalchemy import Select, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from spotme_server.core.errors import NotFoundError
from spotme_server.core.timestamps import isoformat_utc
from spotme_server.models.location import Location
from spotme_server.models.user import User
from spotme_server.services.storage import storage_errors

logger = structlog.get_logger()


def serialize_location(location: Location | None) -> dict[str, Any] | None:
    """Shape a stored sample for the console."""
    if location is None:
        return None

    return {
        "latitude": location.latitude,
        "longitude": location.longitude,
        "accuracy": location.accuracy,
        "locationName": location.location_name,
        "timestamp": isoformat_utc(location.recorded_at),
    }


def serialize_user(user: User, location: Location | None = None) -> dict[str, Any]:
    """Shape a user and their latest sample for the console."""
    return {
        "id": user.id,
        "name": user.name,
        "isActive": user.is_active,
        "lastUpdated": isoformat_utc(user.last_updated),
        "isTracking": bool(user.is_tracking),
        "adminTrackingStarted": isoformat_utc(user.admin_tracking_started),
        "adminTrackingStartedBy": user.admin_tracking_started_by,
        "adminTrackingStopped": isoformat_utc(user.admin_tracking_stopped),
        "adminTrackingStoppedBy": user.admin_tracking_stopped_by,
        "location": serialize_location(location),
    }


class ActiveUsersViewBuilder:
    """Joins active users with the sample holding their greatest ``recorded_at``.

    Pure read: always reflects the committed state at call time. Ties on
    ``recorded_at`` go to the sample received last.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize view builder.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="views")

    def _users_with_latest_location(self) -> Select[tuple[User, Location]]:
        ranked = select(
            Location,
            func.row_number()
            .over(
                partition_by=Location.user_name,
                order_by=(
                    Location.recorded_at.desc(),
                    Location.created_at.desc(),
                    Location.id.desc(),
                ),
            )
            .label("position_rank"),
        ).subquery("ranked_locations")
        latest = aliased(Location, ranked)

        return (
            select(User, latest)
            .outerjoin(
                latest,
                and_(latest.user_name == User.name, ranked.c.position_rank == 1),
            )
            .where(User.is_active == True)  # noqa: E712
        )

    async def list_active_users(self) -> list[dict[str, Any]]:
        """All active users, most recently updated first."""
        stmt = self._users_with_latest_location().order_by(User.last_updated.desc(), User.name)

        async with storage_errors(self.session, "fetch users"):
            result = await self.session.execute(stmt)
            rows = result.all()

        return [serialize_user(user, location) for user, location in rows]

    async def get_user(self, name: str) -> dict[str, Any]:
        """Projection of a single active user.

        Raises:
            NotFoundError: If no active user has this name
        """
        stmt = self._users_with_latest_location().where(User.name == name).limit(1)

        async with storage_errors(self.session, "fetch user", name=name):
            result = await self.session.execute(stmt)
            row = result.first()

        if row is None:
            raise NotFoundError("User not found")

        user, location = row
        return serialize_user(user, location)

    async def tracking_status(self) -> dict[str, bool]:
        """Map of active user name to the admin tracking flag."""
        async with storage_errors(self.session, "fetch tracking status"):
            result = await self.session.execute(
                select(User.name, User.is_tracking).where(User.is_active == True)  # noqa: E712
            )
            rows = result.all()

        return {name: bool(is_tracking) for name, is_tracking in rows}
