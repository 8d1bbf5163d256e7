"""Tracking session: the participant side sampling loop.

State machine::

    IDLE --start()/resume()--> TRACKING --stop()--> IDLE

While TRACKING a tick runs every 3 s (30 s in the background). A tick takes a
position fix, resolves a place name, and submits the sample, falling back to
the offline queue when the server cannot be reached. Connectivity changes
drive the queue: going online drains it after a short stabilization delay.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from spotme_server.client.api_client import DeliveryError
from spotme_server.client.geolocation import GeolocationError, acquire_position
from spotme_server.client.queue import DrainResult, PendingSample
from spotme_server.core.config import settings
from spotme_server.core.timestamps import normalize_timestamp, utc_now
from spotme_server.services.geocoding import PLACEHOLDER_LOCATION_NAME

if TYPE_CHECKING:
    from spotme_server.client.api_client import SpotMeClient
    from spotme_server.client.geolocation import GeolocationProvider
    from spotme_server.client.queue import OfflineSampleQueue
    from spotme_server.client.scheduling import Scheduler, TaskHandle
    from spotme_server.client.store import JsonFileStore

logger = structlog.get_logger()


class TrackingState(StrEnum):
    """Lifecycle of a tracking session."""

    IDLE = "idle"
    TRACKING = "tracking"


class StatusKind(StrEnum):
    """Severity of a status message."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class StatusMessage:
    """User facing status line."""

    kind: StatusKind
    message: str
    at: datetime = field(default_factory=utc_now)


class TrackingSession:
    """Samples one participant's position and delivers it to the server.

    Attributes:
        user_name: Registered display name the samples belong to
        state: Current lifecycle state
        online: Last known connectivity
        visible: Foreground (short interval) or background (long interval)
        statuses: Recent status messages, newest last
        last_sample: Most recent sample built by a tick
    """

    SNAPSHOT_KEY = "backgroundTracking"

    def __init__(
        self,
        user_name: str,
        *,
        api: SpotMeClient,
        geolocation: GeolocationProvider,
        queue: OfflineSampleQueue,
        scheduler: Scheduler,
        store: JsonFileStore,
        online: bool = True,
        on_status: Callable[[StatusMessage], None] | None = None,
        foreground_interval: float | None = None,
        background_interval: float | None = None,
        position_timeout: float | None = None,
        reconnect_delay: float | None = None,
        max_inflight_ticks: int | None = None,
    ) -> None:
        self.user_name = user_name
        self.api = api
        self.geolocation = geolocation
        self.queue = queue
        self.scheduler = scheduler
        self.store = store
        self.on_status = on_status

        self.foreground_interval = foreground_interval or settings.client_foreground_interval_seconds
        self.background_interval = background_interval or settings.client_background_interval_seconds
        self.position_timeout = position_timeout or settings.client_position_timeout_seconds
        self.reconnect_delay = (
            settings.client_reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
        )
        self.max_inflight_ticks = max_inflight_ticks or settings.client_max_inflight_ticks

        self.state = TrackingState.IDLE
        self.online = online
        self.visible = True
        self.statuses: deque[StatusMessage] = deque(maxlen=100)
        self.last_sample: PendingSample | None = None

        self._timer: TaskHandle | None = None
        self._sync_timer: TaskHandle | None = None
        self._ticks: set[asyncio.Task[PendingSample | None]] = set()
        self.logger = logger.bind(component="tracking_session", user_name=user_name)

        if len(self.queue):
            self._report(
                StatusKind.INFO,
                f"{len(self.queue)} cached locations found. Will sync when connection is restored.",
            )

    @property
    def is_tracking(self) -> bool:
        return self.state is TrackingState.TRACKING

    @property
    def interval(self) -> float:
        """Sampling period for the current visibility."""
        return self.foreground_interval if self.visible else self.background_interval

    @property
    def last_status(self) -> StatusMessage | None:
        return self.statuses[-1] if self.statuses else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin periodic sampling and take the first sample right away."""
        if self.is_tracking:
            return

        self.state = TrackingState.TRACKING
        self._persist_snapshot()
        self._schedule_ticks()
        self.logger.info("Tracking started", interval=self.interval)
        self._report(
            StatusKind.INFO,
            f"Live tracking started! Updating every {self.interval:g} seconds...",
        )
        self._spawn_tick()

    async def stop(self) -> None:
        """Stop sampling. Ticks already running are allowed to finish."""
        if not self.is_tracking:
            return

        self.state = TrackingState.IDLE
        self._cancel_timer()
        self._clear_snapshot()
        await self.wait_idle()
        self.logger.info("Tracking stopped")
        self._report(StatusKind.INFO, "Live tracking stopped.")

    async def resume(self) -> bool:
        """Restart tracking if a snapshot for this user survived a restart.

        Returns:
            True if tracking was resumed
        """
        snapshot = self.store.get(self.SNAPSHOT_KEY)
        if not isinstance(snapshot, dict) or snapshot.get("userName") != self.user_name:
            return False

        self.logger.info("Resuming tracking", started_at=snapshot.get("startedAt"))
        await self.start()
        return True

    async def close(self) -> None:
        """Stop tracking and cancel a pending reconnect drain."""
        await self.stop()
        self._cancel_sync_timer()

    async def wait_idle(self) -> None:
        """Wait until no tick is running."""
        while self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Environment changes
    # ------------------------------------------------------------------

    def set_visible(self, visible: bool) -> None:
        """Switch between the foreground and background sampling period."""
        if visible == self.visible:
            return

        self.visible = visible
        if self.is_tracking:
            self._cancel_timer()
            self._schedule_ticks()
            self.logger.info("Sampling interval changed", interval=self.interval)

    def set_online(self, online: bool) -> None:
        """Record a connectivity change.

        Going online schedules a queue drain after the stabilization delay.
        Any later transition cancels a drain that has not started yet.
        """
        if online == self.online:
            return

        self.online = online
        self._cancel_sync_timer()

        if online:
            self._report(StatusKind.SUCCESS, "Connection restored! Syncing cached locations...")
            self._sync_timer = self.scheduler.after(self.reconnect_delay, self._on_reconnect)
        else:
            self._report(StatusKind.WARNING, "Connection lost. Locations will be cached offline.")

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    async def tick(self) -> PendingSample | None:
        """Take one sample and deliver or cache it.

        Returns:
            The sample built, or None when no position could be obtained
        """
        self._report(StatusKind.INFO, "Getting your location...")

        try:
            position = await acquire_position(self.geolocation, self.position_timeout)
        except GeolocationError as e:
            self.logger.warning("Position unavailable", kind=e.kind, error=str(e))
            self._report(StatusKind.ERROR, str(e))
            return None

        timestamp = normalize_timestamp(None)
        if self.online:
            location_name = await self.api.lookup_location_name(position.latitude, position.longitude)
        else:
            location_name = PLACEHOLDER_LOCATION_NAME

        sample = PendingSample(
            user_name=self.user_name,
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=position.accuracy,
            location_name=location_name,
            timestamp=timestamp,
        )
        self.last_sample = sample

        if not self.online:
            self.queue.enqueue(sample)
            self._report(
                StatusKind.WARNING,
                "Location cached offline. Will sync when connection is restored.",
            )
            return sample

        try:
            await self.api.submit_location(sample)
        except DeliveryError as e:
            if e.retryable:
                self.queue.enqueue(sample)
                self._report(
                    StatusKind.WARNING,
                    "Could not reach the server. Location cached offline.",
                )
            else:
                self.logger.error(
                    "Location rejected", status_code=e.status_code, error=str(e)
                )
                self._report(StatusKind.ERROR, f"Location rejected by server: {e}")
            return sample

        self._report(StatusKind.SUCCESS, "Location updated successfully!")
        return sample

    async def sync_pending(self) -> DrainResult:
        """Drain the offline queue and report the outcome."""
        pending = len(self.queue)
        if pending == 0:
            return DrainResult()

        self._report(StatusKind.INFO, f"Syncing {pending} cached locations...")
        result = await self.queue.drain(self.api.submit_location)

        if result.succeeded:
            self._report(StatusKind.SUCCESS, f"Synced {result.succeeded} locations successfully!")
        if result.failed:
            self._report(
                StatusKind.WARNING,
                f"{result.failed} locations failed to sync and will be retried later.",
            )
        if result.rejected:
            self._report(
                StatusKind.ERROR,
                f"{result.rejected} locations were rejected by the server and will not be retried.",
            )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _schedule_ticks(self) -> None:
        self._timer = self.scheduler.every(self.interval, self._on_timer)

    async def _on_timer(self) -> None:
        if not self.is_tracking:
            return
        if len(self._ticks) >= self.max_inflight_ticks:
            self.logger.warning("Skipping tick, too many in flight", inflight=len(self._ticks))
            return
        self._spawn_tick()

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.tick())
        self._ticks.add(task)
        task.add_done_callback(self._on_tick_done)

    def _on_tick_done(self, task: asyncio.Task[PendingSample | None]) -> None:
        self._ticks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Tick failed", error=str(error), exc_info=error)
            self._report(StatusKind.ERROR, "Unknown error occurred while getting location.")

    async def _on_reconnect(self) -> None:
        self._sync_timer = None
        if self.online:
            await self.sync_pending()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_sync_timer(self) -> None:
        if self._sync_timer is not None:
            self._sync_timer.cancel()
            self._sync_timer = None

    def _persist_snapshot(self) -> None:
        try:
            self.store.set(
                self.SNAPSHOT_KEY,
                {"userName": self.user_name, "startedAt": normalize_timestamp(None)},
            )
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Failed to persist tracking snapshot", error=str(e))

    def _clear_snapshot(self) -> None:
        try:
            self.store.delete(self.SNAPSHOT_KEY)
        except OSError as e:
            self.logger.error("Failed to clear tracking snapshot", error=str(e))

    def _report(self, kind: StatusKind, message: str) -> None:
        status = StatusMessage(kind=kind, message=message)
        self.statuses.append(status)
        if self.on_status is not None:
            self.on_status(status)
