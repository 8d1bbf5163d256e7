"""Tracked participant model."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from spotme_server.models.base import Base, TimestampMixin, generate_uuid


class User(Base, TimestampMixin):
    """A participant sharing their location, identified by display name.

    Names are unique among active users only: deactivation is a soft delete
    and frees the name for re-registration. The partial unique index backs
    the check the registry performs before inserting.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_active_name",
            "name",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    # Opaque identifier, client supplied or generated
    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=generate_uuid,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(default=True, index=True)
    is_tracking: Mapped[bool] = mapped_column(default=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    # Audit trail of the last admin start/stop actions
    admin_tracking_started: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    admin_tracking_started_by: Mapped[str | None] = mapped_column(String(255))
    admin_tracking_stopped: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    admin_tracking_stopped_by: Mapped[str | None] = mapped_column(String(255))

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(name={self.name}, is_active={self.is_active}, is_tracking={self.is_tracking})>"
