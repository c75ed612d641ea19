"""Install booking reminders whenever a booking is created or edited."""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from garage_booking.core.clock import Clock, system_clock
from garage_booking.db.enums import INACTIVE_STATUSES
from garage_booking.scheduler.job_store import JobStore
from garage_booking.scheduler.policy import ReminderAction, plan_reminders
from garage_booking.scheduler.reminder_scheduler import ReminderScheduler, get_scheduler
from garage_booking.scheduler.time_resolution import InvalidBookingDate, resolve_booking_start

logger = logging.getLogger(__name__)

_job_store: JobStore | None = None


def get_job_store() -> JobStore:
    global _job_store
    if _job_store is None:
        from garage_booking.db.session import SessionLocal

        _job_store = JobStore(SessionLocal)
    return _job_store


def cancel_reminders_for_booking(booking_id: int, job_store: JobStore | None = None) -> int:
    store = job_store or get_job_store()
    try:
        return store.cancel(booking_id)
    except SQLAlchemyError:
        logger.exception("Failed to cancel reminders for booking %s", booking_id)
        return 0


def schedule_reminders_for_booking(
    booking: Any,
    *,
    job_store: JobStore | None = None,
    clock: Clock | None = None,
    scheduler: ReminderScheduler | None = None,
) -> None:
    """Replace the booking's reminder triggers with ones matching its current time.

    Safe to call on every create or update. Never raises: a scheduling failure
    must not fail the booking write that triggered it.
    """
    try:
        _schedule(booking, job_store or get_job_store(), clock or system_clock, scheduler)
    except Exception:
        logger.exception(
            "Unhandled error scheduling reminders for booking %s",
            getattr(booking, "id", None),
        )


def _schedule(
    booking: Any,
    store: JobStore,
    clock: Clock,
    scheduler: ReminderScheduler | None,
) -> None:
    booking_id = getattr(booking, "id", None)
    if booking_id is None:
        logger.error("Cannot schedule reminders for a booking without an id.")
        return

    now = clock.now()
    try:
        store.cancel(booking_id, now=now)
    except SQLAlchemyError:
        logger.exception("Failed to clear reminder triggers for booking %s", booking_id)
        return

    status = getattr(booking, "status", None)
    if status in INACTIVE_STATUSES:
        logger.info("Booking %s is %s; no reminders scheduled.", booking_id, status.value)
        return

    try:
        appointment_at = resolve_booking_start(booking)
    except InvalidBookingDate as exc:
        logger.error("Not scheduling reminders for booking %s: %s", booking_id, exc)
        return

    payload = {"booking_id": booking_id}
    fired_now = False
    for decision in plan_reminders(appointment_at, now):
        try:
            if decision.action is ReminderAction.SCHEDULE:
                store.insert(decision.kind, decision.fire_at, payload)
            elif decision.action is ReminderAction.FIRE_NOW:
                store.fire_immediately(decision.kind, payload, now=now)
                fired_now = True
                logger.info(
                    "Lead time for %s reminder of booking %s has passed; sending now.",
                    decision.kind.label,
                    booking_id,
                )
            else:
                logger.info(
                    "Skipping %s reminder for booking %s (%s, appointment %s).",
                    decision.kind.label,
                    booking_id,
                    decision.action.value,
                    appointment_at.isoformat(),
                )
        except SQLAlchemyError:
            logger.exception(
                "Failed to store %s reminder for booking %s", decision.kind.label, booking_id
            )

    if fired_now:
        runtime = scheduler or get_scheduler()
        if runtime is not None:
            runtime.wakeup()
