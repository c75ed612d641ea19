"""
Unit tests for reminder fire-time classification
"""
from datetime import datetime, timedelta

import pytest

from garage_booking.db.enums import ReminderKind
from garage_booking.scheduler.policy import ReminderAction, classify, plan_reminders

NOW = datetime(2026, 3, 9, 8, 0)


def _actions(appointment_at):
    return {d.kind: d.action for d in plan_reminders(appointment_at, NOW)}


def test_more_than_a_day_ahead_schedules_both():
    appointment = NOW + timedelta(days=2)
    decisions = {d.kind: d for d in plan_reminders(appointment, NOW)}

    assert decisions[ReminderKind.TWENTY_FOUR_HOUR].action is ReminderAction.SCHEDULE
    assert decisions[ReminderKind.TWENTY_FOUR_HOUR].fire_at == appointment - timedelta(hours=24)
    assert decisions[ReminderKind.ONE_HOUR].action is ReminderAction.SCHEDULE
    assert decisions[ReminderKind.ONE_HOUR].fire_at == appointment - timedelta(hours=1)


def test_within_a_day_drops_the_day_before_reminder():
    assert _actions(NOW + timedelta(hours=5)) == {
        ReminderKind.TWENTY_FOUR_HOUR: ReminderAction.PAST,
        ReminderKind.ONE_HOUR: ReminderAction.SCHEDULE,
    }


def test_within_an_hour_fires_one_hour_reminder_now():
    assert _actions(NOW + timedelta(minutes=30)) == {
        ReminderKind.TWENTY_FOUR_HOUR: ReminderAction.PAST,
        ReminderKind.ONE_HOUR: ReminderAction.FIRE_NOW,
    }


@pytest.mark.parametrize("offset", [timedelta(0), timedelta(minutes=-1), timedelta(days=-3)])
def test_elapsed_appointment_is_moot(offset):
    assert set(_actions(NOW + offset).values()) == {ReminderAction.MOOT}


def test_fire_time_equal_to_now_is_not_schedulable():
    appointment = NOW + timedelta(hours=24)

    assert classify(ReminderKind.TWENTY_FOUR_HOUR, appointment, NOW).action is ReminderAction.PAST
    assert classify(ReminderKind.ONE_HOUR, NOW + timedelta(hours=1), NOW).action is (
        ReminderAction.FIRE_NOW
    )


def test_decisions_cover_every_kind_once():
    kinds = [d.kind for d in plan_reminders(NOW + timedelta(days=1), NOW)]

    assert sorted(kinds) == sorted(ReminderKind)
