"""Polling runtime for booking reminder triggers.

Uses an APScheduler BackgroundScheduler interval job to claim due triggers
from the job store every few seconds. Claimed triggers are handed to a
thread pool so a slow handler never holds up the next poll. Each process
claims under its own owner id; a claim lasts ``lock_duration`` and then
expires, which is how triggers from a crashed process get picked up again.
"""

import logging
import os
import socket
import threading
import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from enum import Enum

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from garage_booking.core.clock import Clock, system_clock
from garage_booking.core.config import (
    REMINDER_LOCK_SECONDS,
    REMINDER_POLL_BATCH_SIZE,
    REMINDER_POLL_INTERVAL_SECONDS,
    REMINDER_WORKERS,
)
from garage_booking.db.enums import ReminderKind
from garage_booking.scheduler.job_store import JobStore, TriggerRecord

logger = logging.getLogger(__name__)

POLL_JOB_ID = "booking_reminder_poll"

Handler = Callable[[TriggerRecord], bool]


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"


def _default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class ReminderScheduler:
    def __init__(
        self,
        job_store: JobStore,
        handlers: Mapping[ReminderKind, Handler],
        clock: Clock = system_clock,
        poll_interval: timedelta = timedelta(seconds=REMINDER_POLL_INTERVAL_SECONDS),
        lock_duration: timedelta = timedelta(seconds=REMINDER_LOCK_SECONDS),
        workers: int = REMINDER_WORKERS,
        batch_size: int = REMINDER_POLL_BATCH_SIZE,
        owner: str | None = None,
    ) -> None:
        if poll_interval >= lock_duration:
            raise ValueError("poll_interval must be shorter than lock_duration")

        self.job_store = job_store
        self.handlers = dict(handlers)
        self.clock = clock
        self.poll_interval = poll_interval
        self.lock_duration = lock_duration
        self.batch_size = batch_size
        self.owner = owner or _default_owner()
        self.state = SchedulerState.IDLE

        self._workers = workers
        self._executor: ThreadPoolExecutor | None = None
        self._scheduler: BackgroundScheduler | None = None
        self._state_lock = threading.Lock()
        self._in_flight = 0

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            return

        self._in_flight = 0
        self._executor = ThreadPoolExecutor(
            max_workers=self._workers,
            thread_name_prefix="reminder-handler",
        )
        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self._poll_tick,
            IntervalTrigger(seconds=self.poll_interval.total_seconds()),
            id=POLL_JOB_ID,
            name="Claim and dispatch due booking reminders",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        self._scheduler.start()
        logger.info(
            "Reminder scheduler %s started (poll every %ss, lock %ss).",
            self.owner,
            int(self.poll_interval.total_seconds()),
            int(self.lock_duration.total_seconds()),
        )

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=wait)
            self._scheduler = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        self.state = SchedulerState.IDLE
        logger.info("Reminder scheduler %s shut down.", self.owner)

    def wakeup(self) -> None:
        """Run the next poll as soon as possible instead of on the next tick."""
        if not self.running:
            return
        job = self._scheduler.get_job(POLL_JOB_ID)
        if job is not None:
            job.modify(next_run_time=datetime.now())

    def _poll_tick(self) -> None:
        try:
            self.poll()
        except Exception:
            logger.exception("Unhandled error in reminder poll.")

    def poll(self) -> list[Future]:
        """Claim due triggers and submit them to the worker pool.

        Claims no more triggers than there are idle workers, so nothing sits
        in the executor queue while its lease runs out.
        """
        executor = self._executor
        if executor is None:
            raise RuntimeError("Reminder scheduler is not started.")

        with self._state_lock:
            free_workers = self._workers - self._in_flight
        if free_workers <= 0:
            logger.debug("All %d reminder workers busy; skipping claim.", self._workers)
            return []

        triggers = self._claim(limit=min(self.batch_size, free_workers))
        if not triggers:
            return []

        with self._state_lock:
            self.state = SchedulerState.DISPATCHING
            self._in_flight += len(triggers)
        try:
            return [executor.submit(self._dispatch_in_worker, trigger) for trigger in triggers]
        finally:
            with self._state_lock:
                self.state = SchedulerState.IDLE

    def _dispatch_in_worker(self, trigger: TriggerRecord) -> bool:
        try:
            return self.dispatch(trigger)
        finally:
            with self._state_lock:
                self._in_flight -= 1

    def run_pending(self) -> int:
        """Claim and handle due triggers on the calling thread. Returns how many ran."""
        triggers = self._claim(limit=self.batch_size)
        with self._state_lock:
            self.state = SchedulerState.DISPATCHING
        try:
            for trigger in triggers:
                self.dispatch(trigger)
        finally:
            with self._state_lock:
                self.state = SchedulerState.IDLE
        return len(triggers)

    def _claim(self, limit: int) -> list[TriggerRecord]:
        with self._state_lock:
            self.state = SchedulerState.POLLING
        try:
            triggers = self.job_store.poll_due(
                now=self.clock.now(),
                lock_duration=self.lock_duration,
                owner=self.owner,
                limit=limit,
            )
        except SQLAlchemyError:
            logger.exception("Failed to poll reminder triggers.")
            triggers = []
        finally:
            with self._state_lock:
                self.state = SchedulerState.IDLE

        if triggers:
            logger.info("Claimed %d reminder trigger(s).", len(triggers))
        return triggers

    def dispatch(self, trigger: TriggerRecord) -> bool:
        handler = self.handlers.get(trigger.kind)
        try:
            if handler is None:
                logger.error(
                    "No handler registered for %s; removing trigger %d",
                    trigger.kind.value,
                    trigger.id,
                )
                self.job_store.remove(trigger.id)
                return False
            return handler(trigger)
        except Exception:
            # Lock stays in place; the trigger is retried after it expires.
            logger.exception("Reminder handler crashed for trigger %d", trigger.id)
            return False


_reminder_scheduler: ReminderScheduler | None = None


def get_scheduler() -> ReminderScheduler | None:
    return _reminder_scheduler


def start_scheduler(
    job_store: JobStore | None = None,
    handlers: Mapping[ReminderKind, Handler] | None = None,
    **kwargs,
) -> ReminderScheduler:
    """Create, configure, and start the process-wide reminder scheduler.

    Returns the scheduler instance so the caller can shut it down if needed.
    """
    global _reminder_scheduler

    if job_store is None or handlers is None:
        from garage_booking.db.session import SessionLocal
        from garage_booking.scheduler.handlers import build_handlers
        from garage_booking.services.notification_service import send_notification

        job_store = job_store or JobStore(SessionLocal)
        handlers = handlers or build_handlers(SessionLocal, job_store, send_notification)

    if _reminder_scheduler is not None:
        _reminder_scheduler.shutdown()

    _reminder_scheduler = ReminderScheduler(job_store, handlers, **kwargs)
    _reminder_scheduler.start()
    return _reminder_scheduler


def stop_scheduler(wait: bool = False) -> None:
    global _reminder_scheduler
    if _reminder_scheduler is not None:
        _reminder_scheduler.shutdown(wait=wait)
        _reminder_scheduler = None
