"""Location ingestion: validation, timestamp normalization and persistence."""

import math
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.errors import NotFoundError, ValidationError
from spotme_server.core.timestamps import normalize_instant
from spotme_server.models.location import Location
from spotme_server.models.user import User
from spotme_server.schemas.users import LocationPayload, RawSampleRequest
from spotme_server.services.registry import UserRegistry
from spotme_server.services.storage import storage_errors

logger = structlog.get_logger()


@dataclass
class IngestionResult:
    """Outcome of a location submission.

    Attributes:
        user: The user after the update
        location: The stored sample (the earlier copy for a replay)
        duplicate: True when the sample id had already been stored
    """

    user: User
    location: Location
    duplicate: bool = False


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Reject positions outside the valid ranges instead of clamping them.

    Raises:
        ValidationError: If either coordinate is not finite or out of range
    """
    if not (math.isfinite(latitude) and -90 <= latitude <= 90):
        raise ValidationError(f"Latitude must be between -90 and 90, got {latitude}")
    if not (math.isfinite(longitude) and -180 <= longitude <= 180):
        raise ValidationError(f"Longitude must be between -180 and 180, got {longitude}")


class LocationIngestionService:
    """Persists location samples for active users.

    Submissions may arrive out of order (offline queue replays, overlapping
    requests); nothing here depends on arrival order because the read path
    picks the latest sample by ``recorded_at``. Samples carrying a
    ``sample_id`` are stored at most once per user.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ingestion service.

        Args:
            session: Database session
        """
        self.session = session
        self.registry = UserRegistry(session)
        self.logger = logger.bind(service="ingestion")

    async def submit_location(
        self,
        user_name: str,
        sample: LocationPayload | None,
        last_updated: Any = None,
    ) -> IngestionResult:
        """Store a sample and bump the user's ``last_updated``.

        Args:
            user_name: Name of an active user
            sample: The observation
            last_updated: Optional client timestamp for the user record

        Returns:
            IngestionResult with the user and stored sample

        Raises:
            ValidationError: Missing name or location, or coordinates out of range
            NotFoundError: No active user with this name
            StorageError: The database failed; clients may retry
        """
        user_name = (user_name or "").strip()
        if not user_name:
            raise ValidationError("Name is required")
        if sample is None:
            raise ValidationError("Location is required")
        validate_coordinates(sample.latitude, sample.longitude)

        recorded_at = normalize_instant(sample.timestamp)
        last_updated_at = normalize_instant(last_updated)

        async with storage_errors(self.session, "update user location", name=user_name):
            user = await self._require_active_user(user_name)

            if sample.sample_id:
                existing = await self._find_sample(user_name, sample.sample_id)
                if existing is not None:
                    self.logger.info(
                        "Duplicate sample ignored", name=user_name, sample_id=sample.sample_id
                    )
                    return IngestionResult(user=user, location=existing, duplicate=True)

            location = Location(
                user_name=user_name,
                sample_id=sample.sample_id,
                latitude=sample.latitude,
                longitude=sample.longitude,
                accuracy=sample.accuracy,
                location_name=sample.location_name,
                recorded_at=recorded_at,
            )
            user.last_updated = last_updated_at
            self.session.add(location)

            try:
                await self.session.commit()
            except IntegrityError:
                # A concurrent replay stored the same sample id first
                await self.session.rollback()
                existing = await self._find_sample(user_name, sample.sample_id or "")
                if existing is None:
                    raise
                user = await self._require_active_user(user_name)
                return IngestionResult(user=user, location=existing, duplicate=True)

        self.logger.info(
            "User location updated",
            name=user_name,
            latitude=location.latitude,
            longitude=location.longitude,
            recorded_at=recorded_at.isoformat(),
        )
        return IngestionResult(user=user, location=location)

    def record_raw_sample(self, sample: RawSampleRequest) -> None:
        """Acknowledge a background sample without persisting it."""
        self.logger.info(
            "Location received",
            latitude=sample.latitude,
            longitude=sample.longitude,
            accuracy=sample.accuracy,
            readings_count=sample.readings_count,
            method=sample.method,
        )

    async def _require_active_user(self, user_name: str) -> User:
        user = await self.registry.get_active_user(user_name)
        if user is None:
            raise NotFoundError(f"User {user_name} not found")
        return user

    async def _find_sample(self, user_name: str, sample_id: str) -> Location | None:
        result = await self.session.execute(
            select(Location).where(Location.user_name == user_name, Location.sample_id == sample_id)
        )
        return result.scalar_one_or_none()
