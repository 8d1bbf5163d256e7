"""Bearer token issued to an admin at login."""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spotme_server.core.timestamps import ensure_utc
from spotme_server.models.base import Base

if TYPE_CHECKING:
    from spotme_server.models.admin_user import AdminUser


class AdminToken(Base):
    """Opaque admin session token.

    Only the SHA-256 hash of the token is stored. Tokens expire after
    ``admin_token_expiry_hours`` and are revoked on logout.

    Attributes:
        id: Auto-incrementing primary key
        token_hash: SHA-256 hash of the raw token
        token_prefix: First 12 chars of the token for identification
        admin_id: FK to the admin the token was issued to
        is_revoked: Set on logout
        created_at: When the token was issued
        expires_at: When the token stops being accepted
        last_used_at: Last successful verification
    """

    __tablename__ = "admin_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    token_prefix: Mapped[str] = mapped_column(String(12), default="")
    admin_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("admin_users.id", ondelete="CASCADE"),
        index=True,
    )
    is_revoked: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    admin: Mapped["AdminUser"] = relationship("AdminUser", lazy="selectin")

    def __repr__(self) -> str:
        """Return string representation."""
        status = "revoked" if self.is_revoked else "active"
        return f"<AdminToken(id={self.id}, prefix={self.token_prefix}, status={status})>"

    @property
    def is_expired(self) -> bool:
        """Return True if this token has expired."""
        return datetime.now(UTC) > ensure_utc(self.expires_at)

    @property
    def is_valid(self) -> bool:
        """Return True if this token can still authenticate."""
        return not self.is_revoked and not self.is_expired

    @classmethod
    def calculate_expiry(cls, hours: int) -> datetime:
        """Calculate the expiry time for a new token."""
        return datetime.now(UTC) + timedelta(hours=hours)
