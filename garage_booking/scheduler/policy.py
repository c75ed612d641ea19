"""Decide what to do with each reminder kind for an appointment."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from garage_booking.db.enums import ReminderKind


class ReminderAction(str, Enum):
    SCHEDULE = "schedule"
    FIRE_NOW = "fire_now"
    PAST = "past"
    MOOT = "moot"


# Only these kinds are sent late when their lead window was missed.
FIRE_NOW_KINDS = frozenset({ReminderKind.ONE_HOUR})


@dataclass(frozen=True)
class ReminderDecision:
    kind: ReminderKind
    action: ReminderAction
    fire_at: datetime


def classify(kind: ReminderKind, appointment_at: datetime, now: datetime) -> ReminderDecision:
    fire_at = appointment_at - kind.lead_time

    if appointment_at <= now:
        action = ReminderAction.MOOT
    elif fire_at > now:
        action = ReminderAction.SCHEDULE
    elif kind in FIRE_NOW_KINDS:
        action = ReminderAction.FIRE_NOW
    else:
        action = ReminderAction.PAST

    return ReminderDecision(kind=kind, action=action, fire_at=fire_at)


def plan_reminders(appointment_at: datetime, now: datetime) -> list[ReminderDecision]:
    """One decision per reminder kind, longest lead time first."""
    return [classify(kind, appointment_at, now) for kind in ReminderKind]
