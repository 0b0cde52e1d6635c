"""One-shot deferred navigation on top of an APScheduler scheduler."""

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)


class NavigationScheduler:
    """Schedules a forced navigation after a delay.

    At most one navigation is pending at a time: schedule() while a job is
    pending returns the existing handle instead of adding another job.
    """

    def __init__(self, scheduler, navigator, time_func=None):
        self._scheduler = scheduler
        self._navigator = navigator
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._pending: str | None = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> str | None:
        """Handle of the pending navigation job, if any."""
        with self._lock:
            return self._pending

    def schedule(self, target: str, delay_seconds: float) -> str:
        with self._lock:
            if self._pending is not None and self._scheduler.get_job(self._pending) is None:
                # Dropped by the scheduler without running
                logger.warning("Pending navigation %s vanished, scheduling a new one", self._pending)
                self._pending = None
            if self._pending is not None:
                logger.info("Navigation already pending (%s), not scheduling %s", self._pending, target)
                return self._pending

            handle = uuid.uuid4().hex
            run_date = self._time_func() + timedelta(seconds=delay_seconds)
            self._scheduler.add_job(
                self._fire,
                "date",
                run_date=run_date,
                args=[handle, target],
                id=handle,
                misfire_grace_time=None,
                coalesce=True,
            )
            self._pending = handle

        logger.info("Navigation to %s scheduled in %ss (%s)", target, delay_seconds, handle)
        return handle

    def cancel(self) -> bool:
        """Remove the pending navigation. Returns False if nothing was pending."""
        with self._lock:
            handle = self._pending
            self._pending = None
        if handle is None:
            return False
        try:
            self._scheduler.remove_job(handle)
        except JobLookupError:
            # Already fired or removed
            return False
        logger.info("Navigation %s cancelled", handle)
        return True

    def _fire(self, handle: str, target: str):
        with self._lock:
            if self._pending == handle:
                self._pending = None
        self._navigator.navigate(target)
