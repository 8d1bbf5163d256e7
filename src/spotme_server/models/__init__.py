"""Database models."""

from spotme_server.models.admin_token import AdminToken
from spotme_server.models.admin_user import AdminUser
from spotme_server.models.base import Base
from spotme_server.models.location import Location
from spotme_server.models.user import User

__all__ = [
    "Base",
    "AdminToken",
    "AdminUser",
    "Location",
    "User",
]
