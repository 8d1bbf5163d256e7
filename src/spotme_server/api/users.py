"""User registry and location ingestion endpoints."""

from typing import Any

from litestar import Router, delete, get, post
from litestar.di import Provide
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server.core.auth import AdminPrincipal, admin_token_guard, provide_admin_principal
from spotme_server.schemas.users import LocationUpdateRequest, RawSampleRequest, UserCreateRequest
from spotme_server.services.ingestion import LocationIngestionService
from spotme_server.services.registry import UserRegistry
from spotme_server.services.views import (
    ActiveUsersViewBuilder,
    serialize_location,
    serialize_user,
)

# ==============================================================================
# Participant endpoints (no auth)
# ==============================================================================


@post("/location-samples", status_code=HTTP_200_OK)
async def receive_location_sample(data: RawSampleRequest, session: AsyncSession) -> dict[str, Any]:
    """Accept a background sample. Logged only, nothing is stored."""
    LocationIngestionService(session).record_raw_sample(data)
    return {"success": True, "message": "Location received"}


@post("/users", status_code=HTTP_201_CREATED)
async def register_user(data: UserCreateRequest, session: AsyncSession) -> dict[str, Any]:
    """Register a display name.

    Returns 409 while another active user holds the same name.
    """
    user = await UserRegistry(session).register_user(
        name=data.name,
        user_id=data.id,
        last_updated=data.last_updated,
    )
    return serialize_user(user)


@post("/users/{name:str}/location", status_code=HTTP_200_OK)
async def update_user_location(
    name: str,
    data: LocationUpdateRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Store a location sample for an active user.

    Example:
        POST /api/users/Carol/location
        {"location": {"latitude": 40.7128, "longitude": -74.006, "accuracy": 15,
                      "timestamp": "2024-05-01T10:00:00Z", "sampleId": "..."}}
    """
    result = await LocationIngestionService(session).submit_location(
        user_name=name,
        sample=data.location,
        last_updated=data.last_updated,
    )

    user = serialize_user(result.user)
    user.pop("location")
    return {
        "success": True,
        "user": user,
        "location": serialize_location(result.location),
        "duplicate": result.duplicate,
    }


@get("/users", status_code=HTTP_200_OK)
async def list_users(session: AsyncSession) -> list[dict[str, Any]]:
    """Active users with their latest location, most recently updated first."""
    return await ActiveUsersViewBuilder(session).list_active_users()


@get("/users/{name:str}", status_code=HTTP_200_OK)
async def get_user(name: str, session: AsyncSession) -> dict[str, Any]:
    """A single active user with their latest location."""
    return await ActiveUsersViewBuilder(session).get_user(name)


# ==============================================================================
# Admin endpoints
# ==============================================================================


@delete("/users/{name:str}", status_code=HTTP_200_OK)
async def deactivate_user(name: str, session: AsyncSession, admin: AdminPrincipal) -> dict[str, Any]:
    """Soft-delete a user. Location history is kept."""
    changed = await UserRegistry(session).deactivate_user(name)
    return {"success": True, "message": "User deactivated", "changed": changed, "by": admin.actor_name}


@delete("/users", status_code=HTTP_200_OK)
async def deactivate_all_users(session: AsyncSession, admin: AdminPrincipal) -> dict[str, Any]:
    """Deactivate every active user ("clear all")."""
    count = await UserRegistry(session).deactivate_all()
    return {
        "success": True,
        "message": "All users deactivated",
        "count": count,
        "by": admin.actor_name,
    }


users_router = Router(
    path="/",
    route_handlers=[
        receive_location_sample,
        register_user,
        update_user_location,
        list_users,
        get_user,
    ],
    tags=["Users"],
)

users_admin_router = Router(
    path="/",
    guards=[admin_token_guard],
    dependencies={"admin": Provide(provide_admin_principal, sync_to_thread=False)},
    route_handlers=[deactivate_user, deactivate_all_users],
    tags=["Users"],
)
