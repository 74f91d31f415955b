"""
Daily scheduling of the past-occurrence sweep.

Runs CleanupService.sweep_past_occurrences once per day at a fixed UTC time
on a background daemon thread. Each run opens its own session from the
session factory, so the sweep never shares a session with request handling.

The clock is injectable: tests drive next_run_after() and run_once() directly
without starting the thread.
"""

import threading
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from eventplan.config.settings import get_settings
from eventplan.services.cleanup_service import CleanupService, SweepStats
from eventplan.utils.logging_config import get_logger


logger = get_logger("scheduler")


class DailySweepScheduler:
    """
    Runs the past-occurrence sweep every day at run_at (UTC).

    Usage:
        >>> scheduler = DailySweepScheduler(SessionLocal)
        >>> scheduler.start()
        >>> ...
        >>> scheduler.stop()
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        run_at: Optional[time] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize scheduler.

        Args:
            session_factory: Callable returning a new Session (e.g. SessionLocal)
            run_at: Time of day for the sweep (default: EVENTPLAN_SWEEP_HOUR:00)
            clock: Returns the current naive UTC time
            batch_size: Sweep batch size (default: settings)
        """
        self.session_factory = session_factory
        self.run_at = run_at or time(get_settings().sweep_hour, 0)
        self.clock = clock
        self.batch_size = batch_size

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_run: Optional[datetime] = None
        self.last_stats: Optional[SweepStats] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run_after(self, now: datetime) -> datetime:
        """First scheduled run strictly after now."""
        candidate = datetime.combine(now.date(), self.run_at)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def run_once(self) -> SweepStats:
        """
        Run one sweep in a fresh session.

        Returns:
            SweepStats from the sweep
        """
        now = self.clock()
        db = self.session_factory()
        try:
            stats = CleanupService(db, batch_size=self.batch_size).sweep_past_occurrences(now=now)
        finally:
            db.close()

        self.last_run = now
        self.last_stats = stats
        return stats

    def start(self) -> None:
        """Start the background thread (no-op when already running)."""
        if self.is_running:
            logger.warning("Sweep scheduler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="eventplan-sweep",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Sweep scheduler started",
            extra={"run_at": self.run_at.isoformat()},
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Sweep scheduler thread did not stop gracefully")
        self._thread = None
        logger.info("Sweep scheduler stopped")

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            now = self.clock()
            next_run = self.next_run_after(now)
            wait_seconds = max(0.0, (next_run - now).total_seconds())

            logger.debug(
                "Next sweep scheduled",
                extra={"next_run": next_run.isoformat(), "wait_seconds": wait_seconds},
            )

            if self._stop_event.wait(wait_seconds):
                break

            try:
                self.run_once()
            except Exception:
                # Keep the schedule alive; the next day retries
                logger.exception("Scheduled sweep failed")
