"""Application services."""

from spotme_server.services.geocoding import ReverseGeocoder
from spotme_server.services.ingestion import IngestionResult, LocationIngestionService
from spotme_server.services.registry import UserRegistry
from spotme_server.services.tracking import AdminTrackingController, TrackingChange
from spotme_server.services.views import ActiveUsersViewBuilder

__all__ = [
    "ActiveUsersViewBuilder",
    "AdminTrackingController",
    "IngestionResult",
    "LocationIngestionService",
    "ReverseGeocoder",
    "TrackingChange",
    "UserRegistry",
]
