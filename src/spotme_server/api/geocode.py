"""Reverse geocoding proxy for tracking clients."""

from typing import Annotated, Any

from litestar import Router, get
from litestar.datastructures import State
from litestar.di import Provide
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK

from spotme_server.services.geocoding import ReverseGeocoder


def provide_geocoder(state: State) -> ReverseGeocoder:
    """Geocoder configured on the application."""
    return state.geocoder


@get("/geocode", status_code=HTTP_200_OK)
async def reverse_geocode(
    geocoder: ReverseGeocoder,
    lat: Annotated[float, Parameter(query="lat", ge=-90, le=90)],
    lng: Annotated[float, Parameter(query="lng", ge=-180, le=180)],
) -> dict[str, Any]:
    """Resolve a position to a place name.

    Upstream failures yield the placeholder name with ``resolved: false``.

    Example:
        GET /api/geocode?lat=40.7128&lng=-74.0060
    """
    name, resolved = await geocoder.resolve_location_name(lat, lng)
    return {
        "latitude": lat,
        "longitude": lng,
        "displayName": name,
        "resolved": resolved,
    }


geocode_router = Router(
    path="/",
    dependencies={"geocoder": Provide(provide_geocoder, sync_to_thread=False)},
    route_handlers=[reverse_geocode],
    tags=["Geocoding"],
)
