"""Tests for the tracking session state machine."""

import asyncio

import pytest

from spotme_server.client.api_client import DeliveryError
from spotme_server.client.geolocation import (
    GeolocationError,
    GeolocationErrorKind,
    Position,
    acquire_position,
)
from spotme_server.client.queue import OfflineSampleQueue, PendingSample
from spotme_server.client.session import StatusKind, TrackingSession, TrackingState
from spotme_server.client.store import JsonFileStore
from spotme_server.services.geocoding import PLACEHOLDER_LOCATION_NAME

# =============================================================================
# Fakes
# =============================================================================


class ManualHandle:
    """Scheduled callback fired by the test instead of a clock."""

    def __init__(self, seconds: float, callback, repeat: bool):
        self.seconds = seconds
        self.callback = callback
        self.repeat = repeat
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler that never fires on its own."""

    def __init__(self):
        self.handles: list[ManualHandle] = []

    def every(self, seconds, callback, *, run_now=False):
        handle = ManualHandle(seconds, callback, repeat=True)
        self.handles.append(handle)
        return handle

    def after(self, seconds, callback):
        handle = ManualHandle(seconds, callback, repeat=False)
        self.handles.append(handle)
        return handle

    def active(self, repeat: bool) -> list[ManualHandle]:
        return [h for h in self.handles if h.repeat is repeat and not h.cancelled]

    async def fire(self, handle: ManualHandle) -> None:
        if handle.cancelled:
            return
        if not handle.repeat:
            handle.cancelled = True
        await handle.callback()


class FakeApi:
    """Stands in for SpotMeClient."""

    def __init__(self):
        self.submitted: list[PendingSample] = []
        self.error: Exception | None = None

    async def lookup_location_name(self, latitude, longitude):
        return "Times Square, New York"

    async def submit_location(self, sample):
        if self.error is not None:
            raise self.error
        self.submitted.append(sample)
        return {"success": True}


class FakeProvider:
    """Geolocation provider returning a fixed fix or error."""

    def __init__(self, position: Position | None = None, error: Exception | None = None):
        self.position = position or Position(latitude=40.7128, longitude=-74.006, accuracy=15)
        self.error = error
        self.release = asyncio.Event()
        self.release.set()

    async def get_position(self) -> Position:
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.position


@pytest.fixture
def store(tmp_path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "client_state.json")


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def session(store, scheduler, api, provider) -> TrackingSession:
    return TrackingSession(
        "Carol",
        api=api,
        geolocation=provider,
        queue=OfflineSampleQueue(store),
        scheduler=scheduler,
        store=store,
        foreground_interval=3,
        background_interval=30,
        position_timeout=1,
        reconnect_delay=2,
    )


def messages(session: TrackingSession) -> list[str]:
    return [status.message for status in session.statuses]


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """IDLE -> TRACKING -> IDLE."""

    async def test_start_takes_immediate_sample(self, session, scheduler, api, store):
        await session.start()
        await session.wait_idle()

        assert session.state is TrackingState.TRACKING
        assert [h.seconds for h in scheduler.active(repeat=True)] == [3]
        assert len(api.submitted) == 1
        assert api.submitted[0].location_name == "Times Square, New York"
        assert "Live tracking started! Updating every 3 seconds..." in messages(session)
        assert session.last_status.kind is StatusKind.SUCCESS
        assert session.last_status.message == "Location updated successfully!"
        assert store.get(TrackingSession.SNAPSHOT_KEY)["userName"] == "Carol"

    async def test_timer_ticks(self, session, scheduler, api):
        await session.start()
        await session.wait_idle()

        timer = scheduler.active(repeat=True)[0]
        await scheduler.fire(timer)
        await session.wait_idle()
        await scheduler.fire(timer)
        await session.wait_idle()

        assert len(api.submitted) == 3
        assert len({s.sample_id for s in api.submitted}) == 3

    async def test_start_twice_is_noop(self, session, scheduler):
        await session.start()
        await session.start()
        await session.wait_idle()

        assert len(scheduler.active(repeat=True)) == 1

    async def test_stop(self, session, scheduler, api, store):
        await session.start()
        await session.wait_idle()
        timer = scheduler.active(repeat=True)[0]

        await session.stop()

        assert session.state is TrackingState.IDLE
        assert timer.cancelled is True
        assert store.get(TrackingSession.SNAPSHOT_KEY) is None
        assert session.last_status.message == "Live tracking stopped."

        # A timer callback that was already due does nothing once stopped
        await timer.callback()
        await session.wait_idle()
        assert len(api.submitted) == 1

    async def test_stop_lets_inflight_tick_finish(self, session, api, provider):
        provider.release.clear()
        await session.start()

        stopping = asyncio.create_task(session.stop())
        await asyncio.sleep(0)
        provider.release.set()
        await stopping

        assert len(api.submitted) == 1
        assert session.state is TrackingState.IDLE

    async def test_resume_matching_snapshot(self, session, store):
        store.set(TrackingSession.SNAPSHOT_KEY, {"userName": "Carol", "startedAt": "x"})

        assert await session.resume() is True
        await session.wait_idle()
        assert session.is_tracking

    async def test_resume_other_user(self, session, store):
        store.set(TrackingSession.SNAPSHOT_KEY, {"userName": "Bob", "startedAt": "x"})

        assert await session.resume() is False
        assert session.state is TrackingState.IDLE

    async def test_visibility_changes_interval(self, session, scheduler):
        await session.start()
        await session.wait_idle()

        session.set_visible(False)
        assert [h.seconds for h in scheduler.active(repeat=True)] == [30]

        session.set_visible(True)
        assert [h.seconds for h in scheduler.active(repeat=True)] == [3]


# =============================================================================
# Ticks
# =============================================================================


class TestTick:
    """A single sampling step."""

    async def test_offline_tick_is_cached(self, session, api):
        session.set_online(False)

        sample = await session.tick()

        assert api.submitted == []
        assert len(session.queue) == 1
        assert sample.location_name == PLACEHOLDER_LOCATION_NAME
        assert session.last_status.kind is StatusKind.WARNING
        assert session.last_status.message == (
            "Location cached offline. Will sync when connection is restored."
        )

    async def test_retryable_failure_is_cached(self, session, api):
        api.error = DeliveryError("Server responded 503", status_code=503)

        await session.tick()

        assert len(session.queue) == 1
        assert session.last_status.kind is StatusKind.WARNING

    async def test_rejection_is_not_cached(self, session, api):
        api.error = DeliveryError("Server responded 404", status_code=404, retryable=False)

        await session.tick()

        assert len(session.queue) == 0
        assert session.last_status.kind is StatusKind.ERROR

    async def test_permission_denied(self, session, api, provider):
        provider.error = GeolocationError(GeolocationErrorKind.PERMISSION_DENIED)

        assert await session.tick() is None

        assert api.submitted == []
        assert session.last_status.kind is StatusKind.ERROR
        assert session.last_status.message == (
            "Location access denied. Please allow location access and try again."
        )

    async def test_sample_timestamp_is_canonical(self, session, api):
        sample = await session.tick()

        assert sample.timestamp.endswith("Z")
        assert api.submitted[0].timestamp == sample.timestamp

    async def test_status_callback(self, store, scheduler, api, provider):
        received = []
        session = TrackingSession(
            "Carol",
            api=api,
            geolocation=provider,
            queue=OfflineSampleQueue(store),
            scheduler=scheduler,
            store=store,
            on_status=received.append,
        )

        await session.tick()

        assert [s.kind for s in received] == [StatusKind.INFO, StatusKind.SUCCESS]


# =============================================================================
# Connectivity
# =============================================================================


class TestConnectivity:
    """Reconnect handling and queue drain."""

    async def test_reconnect_drains_after_delay(self, session, scheduler, api):
        session.set_online(False)
        await session.tick()
        await session.tick()

        session.set_online(True)
        pending = scheduler.active(repeat=False)
        assert [h.seconds for h in pending] == [2]
        assert api.submitted == []

        await scheduler.fire(pending[0])

        assert len(api.submitted) == 2
        assert len(session.queue) == 0
        assert "Synced 2 locations successfully!" in messages(session)

    async def test_flapping_cancels_pending_drain(self, session, scheduler, api):
        session.set_online(False)
        await session.tick()

        session.set_online(True)
        first = scheduler.active(repeat=False)[0]
        session.set_online(False)

        assert first.cancelled is True
        assert scheduler.active(repeat=False) == []
        assert session.last_status.message == "Connection lost. Locations will be cached offline."

        session.set_online(True)
        await scheduler.fire(scheduler.active(repeat=False)[0])
        assert len(api.submitted) == 1

    async def test_failed_drain_keeps_samples(self, session, api):
        session.set_online(False)
        await session.tick()
        session.set_online(True)
        api.error = DeliveryError("Network error")

        result = await session.sync_pending()

        assert result.failed == 1
        assert len(session.queue) == 1
        assert session.last_status.message == (
            "1 locations failed to sync and will be retried later."
        )

    async def test_cached_samples_announced_on_startup(self, store, scheduler, api, provider):
        queue = OfflineSampleQueue(store)
        queue.enqueue(PendingSample(user_name="Carol", latitude=1, longitude=2))

        session = TrackingSession(
            "Carol",
            api=api,
            geolocation=provider,
            queue=OfflineSampleQueue(store),
            scheduler=scheduler,
            store=store,
        )

        assert session.last_status.message == (
            "1 cached locations found. Will sync when connection is restored."
        )


# =============================================================================
# Geolocation
# =============================================================================


class TestAcquirePosition:
    """Bounded position acquisition."""

    async def test_timeout(self):
        provider = FakeProvider()
        provider.release.clear()

        with pytest.raises(GeolocationError) as exc_info:
            await acquire_position(provider, timeout=0.01)

        assert exc_info.value.kind is GeolocationErrorKind.TIMEOUT
        assert str(exc_info.value) == "Location request timed out. Please try again."

    async def test_unexpected_error(self):
        provider = FakeProvider(error=RuntimeError("sensor offline"))

        with pytest.raises(GeolocationError) as exc_info:
            await acquire_position(provider, timeout=1)

        assert exc_info.value.kind is GeolocationErrorKind.UNKNOWN
        assert str(exc_info.value) == "sensor offline"

    async def test_success(self):
        position = await acquire_position(FakeProvider(), timeout=1)
        assert position.latitude == 40.7128
