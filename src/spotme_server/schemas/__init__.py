"""Pydantic schemas for API requests and responses."""

from spotme_server.schemas.admin import AdminIdentity, AdminLoginRequest, AdminLoginResponse
from spotme_server.schemas.users import (
    LocationPayload,
    LocationUpdateRequest,
    RawSampleRequest,
    UserCreateRequest,
)

__all__ = [
    "AdminIdentity",
    "AdminLoginRequest",
    "AdminLoginResponse",
    "LocationPayload",
    "LocationUpdateRequest",
    "RawSampleRequest",
    "UserCreateRequest",
]
