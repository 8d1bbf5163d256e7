"""Admin authentication for the tracking console.

Security Model:
- Admin users stored in database with Argon2 hashed passwords
- Login issues an opaque bearer token (``spa_...``); only its SHA-256 hash is stored
- Tokens expire after ``admin_token_expiry_hours`` and are revoked on logout
- A static ``ADMIN_API_KEY`` may be configured for scripted access

Requests present the token as ``Authorization: Bearer <token>`` or
``X-Admin-Token: <token>``. A missing token is 401, an unknown, revoked or
expired one is 403.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from litestar import Request
from litestar.connection import ASGIConnection
from litestar.handlers import BaseRouteHandler
from litestar.status_codes import HTTP_403_FORBIDDEN
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spotme_server.core.config import settings
from spotme_server.core.credentials import (
    constant_time_compare,
    generate_admin_token,
    hash_password,
    hash_token,
    verify_password,
)
from spotme_server.core.errors import AuthError
from spotme_server.models.admin_token import AdminToken
from spotme_server.models.admin_user import AdminUser

logger = logging.getLogger(__name__)

# Connection state key for the authenticated admin
ADMIN_STATE_KEY = "admin"


@dataclass(frozen=True)
class AdminPrincipal:
    """An authenticated admin, as seen by request handlers.

    Attributes:
        username: Login name
        actor_name: Name written to tracking audit fields
        admin_id: AdminUser primary key (None for the static API key)
        token_hash: Hash of the presented token (None for the static API key)
    """

    username: str
    actor_name: str
    admin_id: str | None = None
    token_hash: str | None = None


async def get_admin_by_username(username: str, session: AsyncSession) -> AdminUser | None:
    """Get an active admin user by username."""
    result = await session.execute(
        select(AdminUser).where(AdminUser.username == username, AdminUser.is_active == True)  # noqa: E712
    )
    return result.scalar_one_or_none()


async def create_admin_user(
    username: str,
    password: str,
    session: AsyncSession,
    display_name: str | None = None,
) -> AdminUser:
    """Create a new admin user.

    Raises:
        ValueError: If the username is already taken
    """
    existing = await get_admin_by_username(username, session)
    if existing:
        raise ValueError(f"Admin user {username} already exists")

    admin = AdminUser(
        username=username,
        password_hash=hash_password(password),
        display_name=display_name,
    )
    session.add(admin)
    await session.commit()
    await session.refresh(admin)

    return admin


async def ensure_bootstrap_admin(session: AsyncSession) -> AdminUser | None:
    """Create the configured admin account on first start.

    Does nothing when ADMIN_PASSWORD is unset or the account already exists.
    """
    if not settings.admin_password:
        return None

    existing = await get_admin_by_username(settings.admin_username, session)
    if existing:
        return existing

    logger.info(f"Creating bootstrap admin user {settings.admin_username}")
    return await create_admin_user(
        username=settings.admin_username,
        password=settings.admin_password,
        session=session,
    )


async def authenticate_admin(
    username: str, password: str, session: AsyncSession
) -> AdminUser | None:
    """Authenticate admin user with username and password.

    Returns:
        AdminUser if authentication successful, None otherwise
    """
    admin = await get_admin_by_username(username, session)
    if not admin:
        # Still hash something to prevent timing attacks
        hash_password("dummy_password_to_prevent_timing_attack")
        return None

    if not verify_password(password, admin.password_hash):
        return None

    admin.last_login_at = datetime.now(UTC)
    await session.commit()

    return admin


async def issue_admin_token(admin: AdminUser, session: AsyncSession) -> tuple[AdminToken, str]:
    """Issue a new bearer token for an authenticated admin.

    Returns:
        Tuple of (AdminToken record, raw_token). The raw token is only
        returned here.
    """
    generated = generate_admin_token()
    token = AdminToken(
        token_hash=generated.token_hash,
        token_prefix=generated.token_prefix,
        admin_id=admin.id,
        expires_at=AdminToken.calculate_expiry(settings.admin_token_expiry_hours),
    )
    session.add(token)
    await session.commit()
    await session.refresh(token)

    return token, generated.raw_token


async def resolve_admin_token(raw_token: str, session: AsyncSession) -> AdminToken | None:
    """Look up a token and return it if it is still usable."""
    result = await session.execute(
        select(AdminToken).where(AdminToken.token_hash == hash_token(raw_token))
    )
    token = result.scalar_one_or_none()

    if token is None or not token.is_valid or not token.admin.is_active:
        return None

    return token


async def revoke_admin_token(token_hash: str, session: AsyncSession) -> bool:
    """Revoke a token by hash. Returns False if it was unknown or already revoked."""
    result = await session.execute(select(AdminToken).where(AdminToken.token_hash == token_hash))
    token = result.scalar_one_or_none()
    if token is None or token.is_revoked:
        return False

    token.is_revoked = True
    await session.commit()
    return True


def _extract_admin_token(connection: ASGIConnection[Any, Any, Any, Any]) -> str | None:
    """Extract the admin token from request headers."""
    auth_header = connection.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None

    return connection.headers.get("X-Admin-Token")


async def admin_token_guard(
    connection: ASGIConnection[Any, Any, Any, Any], _: BaseRouteHandler
) -> None:
    """Litestar guard that requires an authenticated admin.

    Stores the resulting AdminPrincipal in connection state.

    Raises:
        AuthError: 401 if no token is presented, 403 if it is not accepted
    """
    raw_token = _extract_admin_token(connection)

    if not raw_token:
        logger.warning("Admin request without credentials")
        raise AuthError("Admin token required")

    if settings.admin_api_key and constant_time_compare(raw_token, settings.admin_api_key):
        connection.state[ADMIN_STATE_KEY] = AdminPrincipal(
            username=settings.admin_username,
            actor_name=settings.admin_username,
        )
        return

    session_maker: async_sessionmaker[AsyncSession] = connection.app.state.session_maker
    async with session_maker() as session:
        token = await resolve_admin_token(raw_token, session)
        if token is None:
            logger.warning("Invalid or expired admin token presented")
            raise AuthError("Invalid or expired token", status_code=HTTP_403_FORBIDDEN)

        token.last_used_at = datetime.now(UTC)
        await session.commit()

        connection.state[ADMIN_STATE_KEY] = AdminPrincipal(
            username=token.admin.username,
            actor_name=token.admin.actor_name,
            admin_id=token.admin.id,
            token_hash=token.token_hash,
        )


def provide_admin_principal(request: Request[Any, Any, Any]) -> AdminPrincipal:
    """Dependency returning the admin authenticated by ``admin_token_guard``."""
    principal = request.state.get(ADMIN_STATE_KEY)
    if principal is None:
        raise AuthError("Admin token required")
    return principal
