"""Tests for the offline sample queue."""

import pytest

from spotme_server.client.api_client import DeliveryError
from spotme_server.client.queue import OfflineSampleQueue, PendingSample
from spotme_server.client.store import JsonFileStore


def make_sample(latitude: float, **kwargs) -> PendingSample:
    return PendingSample(
        user_name="Carol",
        latitude=latitude,
        longitude=-74.0,
        accuracy=10,
        timestamp=kwargs.pop("timestamp", "2024-05-01T10:00:00Z"),
        **kwargs,
    )


class RecordingSender:
    """Sender that records deliveries and fails selected samples."""

    def __init__(self, failures: dict[float, Exception] | None = None):
        self.failures = failures or {}
        self.delivered: list[PendingSample] = []

    async def __call__(self, sample: PendingSample) -> None:
        error = self.failures.get(sample.latitude)
        if error is not None:
            raise error
        self.delivered.append(sample)


class BrokenStore(JsonFileStore):
    """Store whose writes always fail."""

    def set(self, key, value):
        raise OSError("disk full")


@pytest.fixture
def store(tmp_path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "client_state.json")


class TestEnqueue:
    """Caching samples while offline."""

    def test_enqueue_persists(self, store: JsonFileStore):
        queue = OfflineSampleQueue(store)
        sample = make_sample(1.0)

        queue.enqueue(sample)

        assert len(queue) == 1
        assert sample.cached_at is not None
        stored = store.get(OfflineSampleQueue.STORE_KEY)
        assert stored[0]["sampleId"] == sample.sample_id
        assert stored[0]["userName"] == "Carol"

    def test_reloaded_after_restart(self, store: JsonFileStore):
        first = OfflineSampleQueue(store)
        first.enqueue(make_sample(1.0))
        first.enqueue(make_sample(2.0))

        second = OfflineSampleQueue(store)

        assert [s.latitude for s in second.pending] == [1.0, 2.0]
        assert second.pending[0].sample_id == first.pending[0].sample_id

    def test_enqueue_never_raises(self, tmp_path):
        queue = OfflineSampleQueue(BrokenStore(tmp_path / "client_state.json"))

        queue.enqueue(make_sample(1.0))

        assert len(queue) == 1

    def test_malformed_entries_dropped(self, store: JsonFileStore):
        store.set(
            OfflineSampleQueue.STORE_KEY,
            [{"latitude": "north"}, make_sample(1.0).to_dict()],
        )

        queue = OfflineSampleQueue(store)

        assert [s.latitude for s in queue.pending] == [1.0]

    def test_timestamp_normalized(self):
        sample = PendingSample.from_dict(
            {"userName": "Carol", "latitude": 1, "longitude": 2, "timestamp": 1714557600000}
        )
        assert sample.timestamp == "2024-05-01T10:00:00.000Z"


class TestDrain:
    """Replaying cached samples."""

    async def test_drain_delivers_in_order(self, store: JsonFileStore):
        queue = OfflineSampleQueue(store)
        for latitude in (1.0, 2.0, 3.0):
            queue.enqueue(make_sample(latitude))
        sender = RecordingSender()

        result = await queue.drain(sender)

        assert (result.succeeded, result.failed, result.rejected) == (3, 0, 0)
        assert [s.latitude for s in sender.delivered] == [1.0, 2.0, 3.0]
        assert len(queue) == 0
        assert store.get(OfflineSampleQueue.STORE_KEY) == []

    async def test_transient_failure_retained(self, store: JsonFileStore):
        """Each sample is tried on its own; only the failed one stays queued."""
        queue = OfflineSampleQueue(store)
        for latitude in (1.0, 2.0, 3.0):
            queue.enqueue(make_sample(latitude))
        sender = RecordingSender({2.0: DeliveryError("Server responded 503", status_code=503)})

        result = await queue.drain(sender)

        assert (result.succeeded, result.failed, result.rejected) == (2, 1, 0)
        assert result.is_partial is True
        assert [s.latitude for s in sender.delivered] == [1.0, 3.0]
        assert [s.latitude for s in queue.pending] == [2.0]
        assert len(OfflineSampleQueue(store)) == 1

    async def test_retry_after_reconnect_delivers_once(self, store: JsonFileStore):
        queue = OfflineSampleQueue(store)
        queue.enqueue(make_sample(1.0))

        offline = RecordingSender({1.0: DeliveryError("Network error")})
        first = await queue.drain(offline)
        online = RecordingSender()
        second = await queue.drain(online)
        third = await queue.drain(online)

        assert first.failed == 1
        assert second.succeeded == 1
        assert third.attempted == 0
        assert len(online.delivered) == 1

    async def test_terminal_rejection_dead_lettered(self, store: JsonFileStore):
        queue = OfflineSampleQueue(store)
        queue.enqueue(make_sample(1.0))
        queue.enqueue(make_sample(2.0))
        error = DeliveryError("Server responded 404: User not found", status_code=404, retryable=False)

        result = await queue.drain(RecordingSender({1.0: error}))

        assert (result.succeeded, result.failed, result.rejected) == (1, 0, 1)
        assert len(queue) == 0
        rejected = queue.rejected
        assert len(rejected) == 1
        assert rejected[0]["latitude"] == 1.0
        assert rejected[0]["statusCode"] == 404

    async def test_unexpected_error_retained(self, store: JsonFileStore):
        queue = OfflineSampleQueue(store)
        queue.enqueue(make_sample(1.0))

        result = await queue.drain(RecordingSender({1.0: RuntimeError("boom")}))

        assert result.failed == 1
        assert len(queue) == 1

    async def test_default_sender(self, store: JsonFileStore):
        sender = RecordingSender()
        queue = OfflineSampleQueue(store, sender=sender)
        queue.enqueue(make_sample(1.0))

        result = await queue.drain()

        assert result.succeeded == 1

    async def test_drain_needs_sender(self, store: JsonFileStore):
        with pytest.raises(ValueError):
            await OfflineSampleQueue(store).drain()

    async def test_empty_queue(self, store: JsonFileStore):
        result = await OfflineSampleQueue(store).drain(RecordingSender())
        assert result.attempted == 0
