"""Periodic recurring-assignment generation and reminder processing.

The scheduler is owned by the process entry point (``run.py``/``wsgi.py``),
never by the application factory. Only one instance should run per
deployment; extra workers set ``SCHEDULER_ENABLED=false``.
"""
import logging
import threading
from datetime import datetime
from threading import Timer
from typing import List, Optional, Tuple

from flask import Flask

logger = logging.getLogger(__name__)


class RecurringGenerationScheduler:
    """Runs ``RecurringAssignmentService.generate_due`` every ``interval_seconds``.

    When ``REMINDERS_ENABLED`` is set, each tick also sends due reminders
    through ``notifier``.
    """

    def __init__(self, app: Flask, interval_seconds: int = None, notifier=None):
        self.app = app
        self.notifier = notifier
        self.reminders_enabled = app.config.get('REMINDERS_ENABLED', True)
        self.interval_seconds = interval_seconds or app.config.get('SCHEDULER_INTERVAL_SECONDS', 60)
        self._timer: Optional[Timer] = None
        self._lock = threading.Lock()
        self._running = False
        self.last_run: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule()
        logger.info(f"Recurring generation scheduler started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Recurring generation scheduler stopped")

    def run_once(self, now: datetime = None) -> List:
        """Run a single sweep inside an application context."""
        from homework_manager.services.recurring_assignment_service import RecurringAssignmentService

        with self.app.app_context():
            generated = RecurringAssignmentService.generate_due(now)
        self.last_run = datetime.now()
        return generated

    def run_reminders(self, now: datetime = None) -> Tuple[List, List]:
        """Send due one-time and urgent reminders; returns both lists."""
        from homework_manager.services.reminder_service import ReminderService

        with self.app.app_context():
            pending = ReminderService.process_pending_reminders(self.notifier, now)
            urgent = ReminderService.process_urgent_reminders(self.notifier, now)
        return pending, urgent

    def _schedule(self) -> None:
        timer = Timer(self.interval_seconds, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        try:
            try:
                self.run_once()
            except Exception:
                logger.exception("Recurring generation sweep failed")

            if self.reminders_enabled:
                try:
                    self.run_reminders()
                except Exception:
                    logger.exception("Reminder processing failed")
        finally:
            with self._lock:
                if self._running:
                    self._schedule()
