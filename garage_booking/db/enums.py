"""Enumerations shared by the ORM models and the reminder scheduler."""

from datetime import timedelta
from enum import Enum


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def from_date(cls, value) -> "Weekday":
        return list(cls)[value.weekday()]


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Bookings in these states never receive reminders.
INACTIVE_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


class ReminderKind(str, Enum):
    """A reminder lead time and the booking flag guarding it."""

    TWENTY_FOUR_HOUR = "reminder-24h"
    ONE_HOUR = "reminder-1h"

    @property
    def lead_time(self) -> timedelta:
        return _LEAD_TIMES[self]

    @property
    def flag_attr(self) -> str:
        return _FLAG_ATTRS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_LEAD_TIMES = {
    ReminderKind.TWENTY_FOUR_HOUR: timedelta(hours=24),
    ReminderKind.ONE_HOUR: timedelta(hours=1),
}

_FLAG_ATTRS = {
    ReminderKind.TWENTY_FOUR_HOUR: "reminder_sent_twenty_four_hour",
    ReminderKind.ONE_HOUR: "reminder_sent_one_hour",
}

_LABELS = {
    ReminderKind.TWENTY_FOUR_HOUR: "24 hours",
    ReminderKind.ONE_HOUR: "1 hour",
}
