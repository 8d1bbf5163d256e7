"""Admin user model for console authentication."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from spotme_server.models.base import Base, TimestampMixin, generate_uuid


class AdminUser(Base, TimestampMixin):
    """Admin allowed to control tracking and remove users.

    Password is hashed using Argon2. ``display_name`` is what ends up in the
    tracking audit fields; it defaults to the username.
    """

    __tablename__ = "admin_users"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )

    # Credentials
    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    display_name: Mapped[str | None] = mapped_column(String(255))

    # Account status
    is_active: Mapped[bool] = mapped_column(default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def actor_name(self) -> str:
        """Name recorded when this admin changes tracking state."""
        return self.display_name or self.username

    def __repr__(self) -> str:
        """String representation."""
        return f"<AdminUser(username={self.username}, is_active={self.is_active})>"
