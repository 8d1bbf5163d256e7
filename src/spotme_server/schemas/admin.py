"""Request and response schemas for admin authentication."""

from pydantic import BaseModel, ConfigDict, Field


class AdminLoginRequest(BaseModel):
    """Credentials posted to /admin/login."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


class AdminIdentity(BaseModel):
    """The authenticated admin."""

    username: str = Field(description="Login name")
    name: str = Field(description="Name recorded in tracking audit fields")
    role: str = Field(default="admin")


class AdminLoginResponse(BaseModel):
    """Token issued on successful login."""

    success: bool = Field(default=True)
    token: str = Field(description="Bearer token (shown once, store securely)")
    expires_at: str = Field(description="Token expiry, ISO-8601 UTC")
    user: AdminIdentity
