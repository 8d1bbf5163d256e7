"""Reverse geocoding through a Nominatim compatible service.

Place names are best-effort enrichment. A failed lookup never blocks
storing a location; callers get a placeholder instead.
"""

import httpx
import structlog

from spotme_server.core.config import settings
from spotme_server.core.errors import UpstreamError

logger = structlog.get_logger()

PLACEHOLDER_LOCATION_NAME = "Location name unavailable"


class ReverseGeocoder:
    """Resolves coordinates to a display name."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize geocoder.

        Args:
            client: Shared HTTP client (a short-lived one is created per call if omitted)
            url: Reverse endpoint (defaults to GEOCODING_URL)
            timeout: Per request timeout in seconds
        """
        self.client = client
        self.url = url or settings.geocoding_url
        self.timeout = timeout or settings.geocoding_timeout_seconds
        self.logger = logger.bind(service="geocoding")

    async def lookup(self, latitude: float, longitude: float) -> str:
        """Return the display name for a position.

        Raises:
            UpstreamError: On transport errors, non-2xx responses or a
                response without a display name
        """
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "zoom": 18,
            "addressdetails": 1,
        }
        headers = {"User-Agent": settings.geocoding_user_agent}

        try:
            if self.client is not None:
                response = await self.client.get(
                    self.url, params=params, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Reverse geocoding failed: {e}") from e

        display_name = data.get("display_name") if isinstance(data, dict) else None
        if not display_name:
            raise UpstreamError("Reverse geocoding returned no display name")

        return str(display_name)

    async def resolve_location_name(self, latitude: float, longitude: float) -> tuple[str, bool]:
        """Lookup that degrades to the placeholder.

        Returns:
            Tuple of (name, resolved) where resolved is False for the placeholder
        """
        try:
            name = await self.lookup(latitude, longitude)
        except UpstreamError as e:
            self.logger.warning(
                "Location name unavailable",
                latitude=latitude,
                longitude=longitude,
                error=str(e),
            )
            return PLACEHOLDER_LOCATION_NAME, False

        return name, True
