"""Reminder handlers invoked by the scheduler runtime for claimed triggers."""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import joinedload, selectinload, sessionmaker

from garage_booking.core.config import FRONTEND_URL, REMINDER_MAX_ATTEMPTS
from garage_booking.db.enums import INACTIVE_STATUSES, ReminderKind
from garage_booking.db.models import Booking
from garage_booking.scheduler.job_store import JobStore, TriggerRecord
from garage_booking.scheduler.time_resolution import display_time, parse_booking_date

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, str, dict[str, Any]], None]

_SUBJECTS = {
    ReminderKind.TWENTY_FOUR_HOUR: "Your booking is coming up in 24 hours",
    ReminderKind.ONE_HOUR: "Your booking is coming up in 1 hour",
}


def build_reminder_data(booking: Booking, kind: ReminderKind, frontend_url: str) -> dict[str, Any]:
    customer = booking.customer
    garage = booking.garage
    day = parse_booking_date(booking.date)
    return {
        "name": customer.name or "there",
        "garageName": garage.name,
        "reminderTime": kind.label,
        "date": day.strftime("%A, %B %d, %Y"),
        "time": display_time(booking),
        "address": garage.address or "N/A",
        "phone": garage.phone or "N/A",
        "pickupDropService": "Yes" if booking.pickup_drop_opted else "No",
        "pickupAddress": booking.pickup_address if booking.pickup_drop_opted else "N/A",
        "services": [service.name for service in booking.services],
        "bookingId": str(booking.id),
        "dashboardUrl": f"{frontend_url}/dashboard/bookings/{booking.id}",
        "cancelUrl": f"{frontend_url}/dashboard/bookings/{booking.id}/cancel",
    }


class ReminderHandler:
    """Sends one kind of reminder for the booking named by a trigger.

    The notification is dispatched before the booking flag is set. A crash
    between the two can resend the reminder on retry; a failed dispatch never
    marks the booking as reminded.
    """

    def __init__(
        self,
        kind: ReminderKind,
        session_factory: sessionmaker,
        job_store: JobStore,
        notifier: Notifier,
        frontend_url: str = FRONTEND_URL,
        max_attempts: int = REMINDER_MAX_ATTEMPTS,
    ) -> None:
        self.kind = kind
        self._session_factory = session_factory
        self._job_store = job_store
        self._notify = notifier
        self._frontend_url = frontend_url
        self._max_attempts = max_attempts

    def __call__(self, trigger: TriggerRecord) -> bool:
        """Handle a claimed trigger. Returns True when the trigger was consumed."""
        booking_id = trigger.payload.get("booking_id", trigger.booking_id)
        try:
            sent = self._send(booking_id)
        except Exception as exc:
            logger.exception(
                "Error in %s reminder job for booking %s", self.kind.label, booking_id
            )
            self._job_store.record_failure(trigger.id, repr(exc), self._max_attempts)
            return False

        self._job_store.remove(trigger.id)
        if sent:
            logger.info("Sent %s reminder for booking %s", self.kind.label, booking_id)
        return True

    def _send(self, booking_id: int) -> bool:
        with self._session_factory() as db:
            booking = db.scalar(
                select(Booking)
                .options(
                    joinedload(Booking.customer),
                    joinedload(Booking.garage),
                    selectinload(Booking.services),
                    selectinload(Booking.time_slots),
                )
                .where(Booking.id == booking_id)
            )
            if booking is None:
                logger.info("Booking %s no longer exists; skipping %s reminder", booking_id, self.kind.label)
                return False
            if booking.reminder_already_sent(self.kind):
                logger.info("Booking %s already has its %s reminder", booking_id, self.kind.label)
                return False
            if booking.status in INACTIVE_STATUSES:
                logger.info(
                    "Booking %s is %s; skipping %s reminder",
                    booking_id,
                    booking.status.value,
                    self.kind.label,
                )
                return False

            recipient = booking.customer.email or booking.customer.phone
            if not recipient:
                logger.warning(
                    "Customer of booking %s has no email or phone; skipping %s reminder",
                    booking_id,
                    self.kind.label,
                )
                return False

            self._notify(
                recipient,
                _SUBJECTS[self.kind],
                "bookingReminder",
                build_reminder_data(booking, self.kind, self._frontend_url),
            )

            booking.mark_reminder_sent(self.kind)
            db.commit()
            return True


def build_handlers(
    session_factory: sessionmaker,
    job_store: JobStore,
    notifier: Notifier,
    **kwargs: Any,
) -> dict[ReminderKind, ReminderHandler]:
    return {
        kind: ReminderHandler(kind, session_factory, job_store, notifier, **kwargs)
        for kind in ReminderKind
    }
