"""Admin tracking control endpoints."""

from typing import Any

from litestar import Router, get, post
from litestar.di import Provide
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.auth import AdminPrincipal, admin_token_guard, provide_admin_principal
from spotme_server.services.tracking import AdminTrackingController
from spotme_server.services.views import ActiveUsersViewBuilder


@post("/users/{name:str}/tracking/start", status_code=HTTP_200_OK)
async def start_user_tracking(
    name: str, session: AsyncSession, admin: AdminPrincipal
) -> dict[str, Any]:
    """Flag a user as tracked and record who did it."""
    change = await AdminTrackingController(session).start_tracking(name, admin)
    return change.to_dict()


@post("/users/{name:str}/tracking/stop", status_code=HTTP_200_OK)
async def stop_user_tracking(
    name: str, session: AsyncSession, admin: AdminPrincipal
) -> dict[str, Any]:
    """Clear a user's tracking flag and record who did it."""
    change = await AdminTrackingController(session).stop_tracking(name, admin)
    return change.to_dict()


@post("/tracking/start-all", status_code=HTTP_200_OK)
async def start_all_tracking(session: AsyncSession, admin: AdminPrincipal) -> dict[str, Any]:
    """Flag every active user as tracked."""
    change = await AdminTrackingController(session).start_all_tracking(admin)
    return change.to_dict()


@post("/tracking/stop-all", status_code=HTTP_200_OK)
async def stop_all_tracking(session: AsyncSession, admin: AdminPrincipal) -> dict[str, Any]:
    """Clear the tracking flag of every active user."""
    change = await AdminTrackingController(session).stop_all_tracking(admin)
    return change.to_dict()


@get("/tracking-status", status_code=HTTP_200_OK)
async def tracking_status(session: AsyncSession) -> dict[str, bool]:
    """Tracking flag per active user name."""
    return await ActiveUsersViewBuilder(session).tracking_status()


tracking_router = Router(
    path="/",
    guards=[admin_token_guard],
    dependencies={"admin": Provide(provide_admin_principal, sync_to_thread=False)},
    route_handlers=[
        start_user_tracking,
        stop_user_tracking,
        start_all_tracking,
        stop_all_tracking,
        tracking_status,
    ],
    tags=["Tracking"],
)
