"""Offline sample queue.

Samples that could not be delivered are appended here and persisted in the
client's durable store. ``drain()`` replays them oldest first. Every sample
is attempted on its own: one failure never stops the rest of the batch.

Outcome per sample:

    delivered            removed from memory and store
    retryable failure    kept for the next drain (network, timeout, 5xx, 408, 429)
    rejected (other 4xx) moved to the dead-letter list, never retried
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from spotme_server.client.api_client import DeliveryError
from spotme_server.core.timestamps import normalize_timestamp

if TYPE_CHECKING:
    from spotme_server.client.store import JsonFileStore

logger = structlog.get_logger()

Sender = Callable[["PendingSample"], Awaitable[object]]


@dataclass
class PendingSample:
    """A location sample waiting for delivery.

    Attributes:
        user_name: Owner of the sample
        latitude: Degrees north
        longitude: Degrees east
        accuracy: Accuracy radius in meters
        location_name: Place name (or placeholder)
        timestamp: Capture time, canonical ISO-8601 UTC
        sample_id: Idempotency key, lets the server drop replays
        cached_at: When the sample entered the queue
    """

    user_name: str
    latitude: float
    longitude: float
    accuracy: float | None = None
    location_name: str | None = None
    timestamp: str = field(default_factory=lambda: normalize_timestamp(None))
    sample_id: str = field(default_factory=lambda: uuid4().hex)
    cached_at: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Location body understood by POST /users/{name}/location."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "locationName": self.location_name,
            "timestamp": self.timestamp,
            "sampleId": self.sample_id,
        }

    def to_dict(self) -> dict[str, Any]:
        """Durable representation."""
        return {
            "userName": self.user_name,
            **self.to_payload(),
            "cachedAt": self.cached_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingSample:
        """Rebuild a sample from its durable representation.

        Raises:
            KeyError, TypeError, ValueError: If the entry is malformed
        """
        return cls(
            user_name=str(data["userName"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=float(data["accuracy"]) if data.get("accuracy") is not None else None,
            location_name=data.get("locationName"),
            timestamp=normalize_timestamp(data.get("timestamp")),
            sample_id=str(data.get("sampleId") or uuid4().hex),
            cached_at=data.get("cachedAt"),
        )


@dataclass
class DrainResult:
    """Counts from one drain pass."""

    succeeded: int = 0
    failed: int = 0
    rejected: int = 0

    @property
    def attempted(self) -> int:
        """Samples attempted in this pass."""
        return self.succeeded + self.failed + self.rejected

    @property
    def is_partial(self) -> bool:
        """True when some samples were delivered and some were not."""
        return self.succeeded > 0 and (self.failed > 0 or self.rejected > 0)


class OfflineSampleQueue:
    """FIFO buffer of undelivered samples, persisted across restarts."""

    STORE_KEY = "pendingLocations"
    DEAD_LETTER_KEY = "rejectedLocations"

    def __init__(self, store: JsonFileStore, sender: Sender | None = None) -> None:
        """Initialize queue and reload anything persisted by an earlier run.

        Args:
            store: Durable store
            sender: Coroutine delivering one sample; raises on failure
        """
        self.store = store
        self.sender = sender
        self.logger = logger.bind(component="offline_queue")
        self._lock = asyncio.Lock()
        self._pending: list[PendingSample] = self._load()

        if self._pending:
            self.logger.info("Loaded cached samples", count=len(self._pending))

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> list[PendingSample]:
        """Snapshot of queued samples, oldest first."""
        return list(self._pending)

    @property
    def rejected(self) -> list[dict[str, Any]]:
        """Dead-lettered samples with the server's reason."""
        return list(self.store.get(self.DEAD_LETTER_KEY, []))

    def enqueue(self, sample: PendingSample) -> None:
        """Append a sample. Never raises; a persistence failure is logged."""
        if sample.cached_at is None:
            sample.cached_at = normalize_timestamp(None)

        self._pending.append(sample)
        self._persist()
        self.logger.info(
            "Location cached offline",
            sample_id=sample.sample_id,
            user_name=sample.user_name,
            queued=len(self._pending),
        )

    async def drain(self, sender: Sender | None = None) -> DrainResult:
        """Try to deliver every queued sample once, in FIFO order.

        Concurrent calls are serialized. Samples enqueued while a drain is
        running wait for the next drain.

        Args:
            sender: Overrides the sender given at construction

        Returns:
            DrainResult with succeeded/failed/rejected counts

        Raises:
            ValueError: If no sender is available
        """
        send = sender or self.sender
        if send is None:
            raise ValueError("OfflineSampleQueue.drain() needs a sender")

        async with self._lock:
            result = DrainResult()
            batch = list(self._pending)

            for sample in batch:
                try:
                    await send(sample)
                except DeliveryError as e:
                    if e.retryable:
                        result.failed += 1
                        self.logger.warning(
                            "Cached sample failed to sync",
                            sample_id=sample.sample_id,
                            status_code=e.status_code,
                            error=str(e),
                        )
                    else:
                        result.rejected += 1
                        self._remove(sample)
                        self._dead_letter(sample, e)
                    continue
                except Exception as e:
                    # Unknown failures stay queued; the rest of the batch still runs
                    result.failed += 1
                    self.logger.exception(
                        "Unexpected error syncing cached sample",
                        sample_id=sample.sample_id,
                        error=str(e),
                    )
                    continue

                result.succeeded += 1
                self._remove(sample)

        self.logger.info(
            "Drain complete",
            succeeded=result.succeeded,
            failed=result.failed,
            rejected=result.rejected,
            remaining=len(self._pending),
        )
        return result

    def _remove(self, sample: PendingSample) -> None:
        self._pending = [s for s in self._pending if s.sample_id != sample.sample_id]
        self._persist()

    def _dead_letter(self, sample: PendingSample, error: DeliveryError) -> None:
        self.logger.warning(
            "Cached sample rejected by server",
            sample_id=sample.sample_id,
            status_code=error.status_code,
            error=str(error),
        )
        entries = self.rejected
        entries.append({**sample.to_dict(), "statusCode": error.status_code, "reason": str(error)})
        try:
            self.store.set(self.DEAD_LETTER_KEY, entries)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Failed to persist rejected sample", error=str(e))

    def _persist(self) -> None:
        try:
            self.store.set(self.STORE_KEY, [s.to_dict() for s in self._pending])
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Failed to persist offline queue", error=str(e))

    def _load(self) -> list[PendingSample]:
        samples = []
        for entry in self.store.get(self.STORE_KEY, []):
            try:
                samples.append(PendingSample.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning("Dropping malformed cached sample", entry=entry, error=str(e))
        return samples
