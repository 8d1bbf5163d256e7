"""Position acquisition for the tracking client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol


class GeolocationErrorKind(StrEnum):
    """Why a position could not be obtained."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


_MESSAGES = {
    GeolocationErrorKind.PERMISSION_DENIED: (
        "Location access denied. Please allow location access and try again."
    ),
    GeolocationErrorKind.POSITION_UNAVAILABLE: (
        "Location information is unavailable. Please try again."
    ),
    GeolocationErrorKind.TIMEOUT: "Location request timed out. Please try again.",
    GeolocationErrorKind.UNSUPPORTED: "Geolocation is not supported on this device.",
    GeolocationErrorKind.UNKNOWN: "Unknown error occurred while getting location.",
}


class GeolocationError(Exception):
    """A position fix failed. ``str(error)`` is a message fit for the user."""

    def __init__(self, kind: GeolocationErrorKind, message: str | None = None):
        super().__init__(message or _MESSAGES[kind])
        self.kind = kind


@dataclass(frozen=True)
class Position:
    """A single position fix."""

    latitude: float
    longitude: float
    accuracy: float | None = None


class GeolocationProvider(Protocol):
    """Source of position fixes (device GPS, OS location service, fixed test values)."""

    async def get_position(self) -> Position:
        """Return a fresh fix or raise ``GeolocationError``."""
        ...


async def acquire_position(provider: GeolocationProvider, timeout: float) -> Position:
    """Ask ``provider`` for a fix, giving up after ``timeout`` seconds.

    Raises:
        GeolocationError: TIMEOUT when the bound elapses, the provider's own
            error otherwise, UNKNOWN for anything unexpected
    """
    try:
        return await asyncio.wait_for(provider.get_position(), timeout=timeout)
    except TimeoutError as e:
        raise GeolocationError(GeolocationErrorKind.TIMEOUT) from e
    except GeolocationError:
        raise
    except Exception as e:
        raise GeolocationError(GeolocationErrorKind.UNKNOWN, str(e) or None) from e
