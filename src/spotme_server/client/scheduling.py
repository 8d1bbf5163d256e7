"""Timer abstraction for the tracking client.

``TrackingSession`` only needs "run this every N seconds" and "run this once
after N seconds", each cancellable. Production uses APScheduler's
``AsyncIOScheduler``; tests pass a manual implementation and advance time
by hand.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from apscheduler.job import Job

logger = structlog.get_logger()

Callback = Callable[[], Awaitable[Any]]


class TaskHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Periodic and one-shot scheduling of coroutine callbacks."""

    def every(self, seconds: float, callback: Callback, *, run_now: bool = False) -> TaskHandle: ...

    def after(self, seconds: float, callback: Callback) -> TaskHandle: ...


class APSchedulerHandle:
    """Handle for a job registered with APScheduler."""

    def __init__(self, scheduler: AsyncIOScheduler, job: Job) -> None:
        self._scheduler = scheduler
        self.job_id = job.id

    def cancel(self) -> None:
        """Remove the job. Cancelling twice, or after a one-shot ran, is a no-op."""
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass


class APSchedulerScheduler:
    """``Scheduler`` backed by an ``AsyncIOScheduler``.

    The APScheduler instance is started lazily on first use, which must
    happen inside a running event loop.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self.scheduler = scheduler or AsyncIOScheduler(timezone=UTC)
        self.logger = logger.bind(component="client_scheduler")

    def _ensure_started(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.debug("Client scheduler started")

    def every(self, seconds: float, callback: Callback, *, run_now: bool = False) -> APSchedulerHandle:
        """Run ``callback`` every ``seconds``; optionally fire once right away."""
        self._ensure_started()
        options: dict[str, Any] = {}
        if run_now:
            options["next_run_time"] = datetime.now(UTC)

        job = self.scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=seconds),
            id=f"every-{uuid4().hex}",
            max_instances=1,
            coalesce=True,
            **options,
        )
        return APSchedulerHandle(self.scheduler, job)

    def after(self, seconds: float, callback: Callback) -> APSchedulerHandle:
        """Run ``callback`` once, ``seconds`` from now."""
        self._ensure_started()
        job = self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=datetime.now(UTC) + timedelta(seconds=seconds)),
            id=f"after-{uuid4().hex}",
        )
        return APSchedulerHandle(self.scheduler, job)

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for running jobs."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.debug("Client scheduler stopped")
