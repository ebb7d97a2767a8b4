# scheduler.py
import logging
import threading
from datetime import datetime
from typing import Callable

from day_boundary import DayBoundary, utc_now

logger = logging.getLogger(__name__)


class NightlyScheduler(threading.Thread):
    """Daemon thread that runs the nightly reset at every day cutoff."""

    def __init__(self, job, boundary: DayBoundary, clock: Callable[[], datetime] = utc_now):
        super().__init__(name="nightly-reset", daemon=True)
        self.job = job
        self.boundary = boundary
        self.clock = clock
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def fire(self, scheduled_at: datetime):
        """Run the job for the cutoff at `scheduled_at`; failures are logged, never raised."""
        try:
            self.job.run(as_of=scheduled_at)
        except Exception:
            logger.exception("[scheduler] nightly reset for %s failed", scheduled_at.isoformat())

    def run(self):
        logger.info("[scheduler] started (%s, cutoff %s)", self.boundary.timezone, self.boundary.cutoff)
        while not self._stop_event.is_set():
            fire_at = self.boundary.next_cutoff(self.clock())
            delay = max(0.0, (fire_at - self.clock()).total_seconds())
            logger.info("[scheduler] next reset at %s", fire_at.isoformat())
            if self._stop_event.wait(delay):
                break
            self.fire(fire_at)
        logger.info("[scheduler] stopped")
