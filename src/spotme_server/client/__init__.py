"""Tracking client: samples the device position and delivers it to the server.

Samples that cannot be delivered are held in a durable offline queue and
replayed once connectivity returns.
"""

from spotme_server.client.api_client import DeliveryError, SpotMeClient
from spotme_server.client.queue import DrainResult, OfflineSampleQueue, PendingSample
from spotme_server.client.session import StatusKind, StatusMessage, TrackingSession, TrackingState
from spotme_server.client.store import JsonFileStore

__all__ = [
    "DeliveryError",
    "DrainResult",
    "JsonFileStore",
    "OfflineSampleQueue",
    "PendingSample",
    "SpotMeClient",
    "StatusKind",
    "StatusMessage",
    "TrackingSession",
    "TrackingState",
]
