"""Admin login, token verification and logout."""

from typing import Any

from litestar import Router, get, post
from litestar.di import Provide
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.auth import (
    AdminPrincipal,
    admin_token_guard,
    authenticate_admin,
    issue_admin_token,
    provide_admin_principal,
    revoke_admin_token,
)
from spotme_server.core.errors import AuthError
from spotme_server.core.timestamps import isoformat_utc
from spotme_server.schemas.admin import AdminIdentity, AdminLoginRequest, AdminLoginResponse


@post("/admin/login", status_code=HTTP_200_OK)
async def admin_login(data: AdminLoginRequest, session: AsyncSession) -> AdminLoginResponse:
    """Exchange admin credentials for a bearer token."""
    admin = await authenticate_admin(data.username, data.password, session)
    if admin is None:
        raise AuthError("Invalid credentials")

    token, raw_token = await issue_admin_token(admin, session)

    return AdminLoginResponse(
        token=raw_token,
        expires_at=isoformat_utc(token.expires_at) or "",
        user=AdminIdentity(username=admin.username, name=admin.actor_name),
    )


@get("/admin/verify", status_code=HTTP_200_OK)
async def admin_verify(admin: AdminPrincipal) -> dict[str, Any]:
    """Confirm the presented token and return the admin it belongs to."""
    identity = AdminIdentity(username=admin.username, name=admin.actor_name)
    return {"success": True, "user": identity.model_dump()}


@post("/admin/logout", status_code=HTTP_200_OK)
async def admin_logout(admin: AdminPrincipal, session: AsyncSession) -> dict[str, Any]:
    """Revoke the presented token. The static API key cannot be revoked."""
    revoked = False
    if admin.token_hash:
        revoked = await revoke_admin_token(admin.token_hash, session)
    return {"success": True, "message": "Logout successful", "revoked": revoked}


admin_auth_router = Router(path="/", route_handlers=[admin_login], tags=["Admin"])

admin_session_router = Router(
    path="/",
    guards=[admin_token_guard],
    dependencies={"admin": Provide(provide_admin_principal, sync_to_thread=False)},
    route_handlers=[admin_verify, admin_logout],
    tags=["Admin"],
)
