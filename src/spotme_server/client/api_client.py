"""HTTP client used by the tracking client to talk to the server."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog

from spotme_server.core.config import settings
from spotme_server.services.geocoding import PLACEHOLDER_LOCATION_NAME

if TYPE_CHECKING:
    from spotme_server.client.queue import PendingSample

logger = structlog.get_logger()

# Client errors that are worth retrying later
RETRYABLE_CLIENT_STATUSES = frozenset({408, 425, 429})


def is_retryable_status(status_code: int) -> bool:
    """Whether a failed response may succeed on a later attempt."""
    return status_code >= 500 or status_code in RETRYABLE_CLIENT_STATUSES


class DeliveryError(Exception):
    """A request to the server did not succeed.

    Attributes:
        status_code: HTTP status, None for transport failures
        retryable: False when the server rejected the request for good
    """

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class SpotMeClient:
    """Async client for the participant endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        api_prefix: str = "/api",
    ) -> None:
        """Initialize client.

        Args:
            base_url: Server root (defaults to CLIENT_SERVER_URL)
            client: Preconfigured HTTP client (owned by the caller)
            timeout: Request timeout in seconds
            api_prefix: Path prefix of the API routes
        """
        self.base_url = (base_url or settings.client_server_url).rstrip("/")
        self.api_prefix = api_prefix.rstrip("/")
        self.timeout = timeout or settings.client_request_timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)
        self.logger = logger.bind(component="api_client", base_url=self.base_url)

    async def __aenter__(self) -> SpotMeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.api_prefix}{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, self._url(path), **kwargs)
        except httpx.TransportError as e:
            raise DeliveryError(f"Network error: {e}") from e

        if not response.is_success:
            detail = _error_detail(response)
            raise DeliveryError(
                f"Server responded {response.status_code}: {detail}",
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def register_user(self, name: str, user_id: str | None = None) -> dict[str, Any]:
        """Register a display name. A 409 means another active user holds it.

        Raises:
            DeliveryError: On any non-success outcome
        """
        body: dict[str, Any] = {"name": name}
        if user_id:
            body["id"] = user_id
        return await self._request("POST", "/users", json=body)

    async def submit_location(self, sample: PendingSample) -> dict[str, Any]:
        """Deliver one sample.

        Raises:
            DeliveryError: Retryable for network errors, 5xx, 408, 425 and 429
        """
        path = f"/users/{quote(sample.user_name, safe='')}/location"
        result = await self._request("POST", path, json={"location": sample.to_payload()})
        self.logger.debug("Location submitted", sample_id=sample.sample_id)
        return result

    async def lookup_location_name(self, latitude: float, longitude: float) -> str:
        """Place name through the server's geocoding proxy, placeholder on failure."""
        try:
            data = await self._request(
                "GET", "/geocode", params={"lat": latitude, "lng": longitude}
            )
        except DeliveryError as e:
            self.logger.warning("Location name lookup failed", error=str(e))
            return PLACEHOLDER_LOCATION_NAME

        if isinstance(data, dict) and data.get("displayName"):
            return str(data["displayName"])
        return PLACEHOLDER_LOCATION_NAME


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]

    if isinstance(data, dict):
        return str(data.get("detail") or data.get("error") or data)
    return str(data)
