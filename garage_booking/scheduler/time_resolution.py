"""Derive the appointment start instant from a booking's date and time slots.

Bookings carry a calendar ``date`` plus either an ordered list of time slots
(``day``, ``open``, ``close``, ``is_closed``) or, for older rows, a single
``selected_time_slot`` string such as ``"10:00 - 11:00"``. The first slot that
is not closed is the *active slot*; its ``open`` string sets the hour and
minute. Every path that cannot find a usable time falls back to 09:00 and
logs a warning. An unusable date is the only hard failure.

Times are naive local wall-clock values; no timezone conversion happens here
beyond bringing aware datetimes into local time.
"""

import logging
import re
from collections.abc import Sequence
from datetime import date, datetime, time
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_APPOINTMENT_TIME = time(9, 0)
TIME_PLACEHOLDER = "your scheduled time"

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})")


class InvalidBookingDate(ValueError):
    """Raised when a booking's date cannot be turned into a calendar date."""


class TimeSlotLike(Protocol):
    open: str
    close: str
    is_closed: bool


def parse_booking_date(value: Any) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return parse_booking_date(datetime.fromisoformat(value.strip()))
        except ValueError as exc:
            raise InvalidBookingDate(f"Unparseable booking date: {value!r}") from exc
    raise InvalidBookingDate(f"Unparseable booking date: {value!r}")


def parse_clock_time(value: str | None) -> time | None:
    """Return the leading ``H:MM``/``HH:MM`` of ``value``, or None."""
    if not value:
        return None
    match = _TIME_PATTERN.match(value)
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def active_time_slot(time_slots: Sequence[TimeSlotLike] | None) -> TimeSlotLike | None:
    for slot in time_slots or ():
        if not slot.is_closed:
            return slot
    return None


def resolve_appointment_start(
    booking_date: Any,
    time_slots: Sequence[TimeSlotLike] | None = None,
    selected_time_slot: str | None = None,
    *,
    booking_id: Any = None,
) -> datetime:
    """Combine the booking date with its start time.

    Raises InvalidBookingDate when the date itself is unusable.
    """
    day = parse_booking_date(booking_date)

    if time_slots:
        slot = active_time_slot(time_slots)
        if slot is None:
            logger.warning(
                "Booking %s has no open time slot; defaulting to %s",
                booking_id,
                DEFAULT_APPOINTMENT_TIME.strftime("%H:%M"),
            )
            start = DEFAULT_APPOINTMENT_TIME
        else:
            start = parse_clock_time(slot.open)
            if start is None:
                logger.warning(
                    "Booking %s has unparseable slot open time %r; defaulting to %s",
                    booking_id,
                    slot.open,
                    DEFAULT_APPOINTMENT_TIME.strftime("%H:%M"),
                )
                start = DEFAULT_APPOINTMENT_TIME
    elif selected_time_slot:
        start = parse_clock_time(selected_time_slot)
        if start is None:
            logger.warning(
                "Booking %s has unparseable time slot %r; defaulting to %s",
                booking_id,
                selected_time_slot,
                DEFAULT_APPOINTMENT_TIME.strftime("%H:%M"),
            )
            start = DEFAULT_APPOINTMENT_TIME
    else:
        logger.warning(
            "Booking %s has no time information; defaulting to %s",
            booking_id,
            DEFAULT_APPOINTMENT_TIME.strftime("%H:%M"),
        )
        start = DEFAULT_APPOINTMENT_TIME

    return datetime.combine(day, start)


def resolve_booking_start(booking: Any) -> datetime:
    return resolve_appointment_start(
        getattr(booking, "date", None),
        getattr(booking, "time_slots", None),
        getattr(booking, "selected_time_slot", None),
        booking_id=getattr(booking, "id", None),
    )


def display_time(booking: Any) -> str:
    """Human-readable appointment window for notifications."""
    slot = active_time_slot(getattr(booking, "time_slots", None))
    if slot is not None and slot.open:
        return f"{slot.open} - {slot.close}" if slot.close else slot.open
    return getattr(booking, "selected_time_slot", None) or TIME_PLACEHOLDER
