"""Health check and service statistics endpoints."""

from typing import Any

from litestar import Router, get
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from spotme_server import __version__
from spotme_server.core.timestamps import isoformat_utc, utc_now
from spotme_server.services.registry import UserRegistry


@get("/health", status_code=HTTP_200_OK, sync_to_thread=False)
def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Status and version information
    """
    return {
        "status": "ok",
        "version": __version__,
    }


@get("/stats", status_code=HTTP_200_OK)
async def service_stats(session: AsyncSession) -> dict[str, Any]:
    """Number of active users."""
    return {
        "activeUsers": await UserRegistry(session).count_active(),
        "timestamp": isoformat_utc(utc_now()),
    }


health_router = Router(path="/", route_handlers=[health_check])
stats_router = Router(path="/", route_handlers=[service_stats])
