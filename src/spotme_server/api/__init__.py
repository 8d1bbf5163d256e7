"""API routes."""

from litestar import Router

from spotme_server.api.admin import admin_auth_router, admin_session_router
from spotme_server.api.geocode import geocode_router
from spotme_server.api.health import health_router, stats_router
from spotme_server.api.tracking import tracking_router
from spotme_server.api.users import users_admin_router, users_router
from spotme_server.core.config import settings

# Routers mounted under the API prefix (/api by default)
_prefixed_routers = [
    users_router,
    users_admin_router,  # Deactivation, admin token required
    tracking_router,  # Tracking control, admin token required
    geocode_router,
    stats_router,
    admin_auth_router,  # Login (no token yet)
    admin_session_router,  # Verify and logout
]

api_router = Router(path=settings.api_prefix, route_handlers=_prefixed_routers)

# Export: health (root), api (prefixed)
api_routers = [health_router, api_router]

__all__ = ["api_routers"]
