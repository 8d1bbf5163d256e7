"""Error taxonomy shared by services and API handlers.

The HTTP facing errors subclass Litestar exceptions so a service can raise
them directly and the framework renders the matching status code.

    ValidationError   400  missing or malformed required field
    ConflictError     409  an active user already holds the name
    NotFoundError     404  unknown or inactive user
    AuthError         401  missing admin credential (403 when invalid/expired)
    StorageError      500  persistence layer failure, retryable by clients
    UpstreamError     -    geocoding/network failure, degraded locally
"""

from litestar.exceptions import (
    ClientException,
    InternalServerException,
    NotAuthorizedException,
    NotFoundException,
)
from litestar.status_codes import HTTP_409_CONFLICT


class ValidationError(ClientException):
    """A required field is missing or has an invalid value."""


class ConflictError(ClientException):
    """The write would create a second active user with the same name."""

    status_code = HTTP_409_CONFLICT


class NotFoundError(NotFoundException):
    """The user does not exist or has been deactivated."""


class AuthError(NotAuthorizedException):
    """Admin credential missing, invalid, revoked or expired."""


class StorageError(InternalServerException):
    """The database rejected or failed a read/write."""


class UpstreamError(Exception):
    """An external lookup (reverse geocoding) failed.

    Never propagated to HTTP callers; callers replace the result with a
    placeholder.
    """
