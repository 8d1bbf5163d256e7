"""Location sample model."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Float, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from spotme_server.models.base import Base


class Location(Base):
    """One observed position of a user.

    Rows are append-only. A user's current location is the row with the
    greatest ``recorded_at``, never the most recently inserted one, so late
    arrivals from an offline queue cannot overwrite newer positions.

    Attributes:
        user_name: Name of the user the sample belongs to
        sample_id: Client generated idempotency key (optional)
        latitude: Degrees, [-90, 90]
        longitude: Degrees, [-180, 180]
        accuracy: Reported accuracy radius in meters
        location_name: Reverse geocoded place name
        recorded_at: Client capture time (normalized to UTC)
        created_at: Server receipt time
    """

    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("user_name", "sample_id", name="uq_locations_user_sample"),
        Index("ix_locations_user_recorded", "user_name", "recorded_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sample_id: Mapped[str | None] = mapped_column(String(64))

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    accuracy: Mapped[float | None] = mapped_column(Float)
    location_name: Mapped[str | None] = mapped_column(Text)

    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Location(user_name={self.user_name}, lat={self.latitude}, "
            f"lon={self.longitude}, recorded_at={self.recorded_at})>"
        )
