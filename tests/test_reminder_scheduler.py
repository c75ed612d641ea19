"""
Tests for the polling runtime
"""
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import timedelta
from unittest.mock import MagicMock, call

import pytest

from garage_booking.db.enums import ReminderKind
from garage_booking.scheduler.job_store import TriggerRecord
from garage_booking.scheduler.reminder_scheduler import ReminderScheduler, SchedulerState

from conftest import REFERENCE_NOW


def _scheduler(job_store, clock, handlers, **kwargs):
    return ReminderScheduler(
        job_store,
        handlers,
        clock=clock,
        poll_interval=timedelta(seconds=10),
        lock_duration=timedelta(minutes=2),
        owner="test-owner",
        **kwargs,
    )


def _recording_handler(result=True):
    calls = []

    def handler(trigger):
        calls.append(trigger)
        return result

    handler.calls = calls
    return handler


def test_poll_interval_must_be_shorter_than_lock():
    with pytest.raises(ValueError):
        ReminderScheduler(
            MagicMock(),
            {},
            poll_interval=timedelta(minutes=5),
            lock_duration=timedelta(minutes=2),
        )


def test_run_pending_routes_due_triggers_by_kind(job_store, clock):
    one_hour = _recording_handler()
    day_before = _recording_handler()
    job_store.insert(ReminderKind.ONE_HOUR, REFERENCE_NOW, {"booking_id": 1})
    job_store.insert(ReminderKind.TWENTY_FOUR_HOUR, REFERENCE_NOW, {"booking_id": 2})
    job_store.insert(ReminderKind.ONE_HOUR, REFERENCE_NOW + timedelta(hours=1), {"booking_id": 3})
    scheduler = _scheduler(
        job_store,
        clock,
        {ReminderKind.ONE_HOUR: one_hour, ReminderKind.TWENTY_FOUR_HOUR: day_before},
    )

    assert scheduler.run_pending() == 2

    assert [t.booking_id for t in one_hour.calls] == [1]
    assert [t.booking_id for t in day_before.calls] == [2]
    assert one_hour.calls[0].lock_owner == "test-owner"
    assert scheduler.state is SchedulerState.IDLE


def test_future_triggers_run_once_the_clock_reaches_them(job_store, clock):
    handler = _recording_handler()
    job_store.insert(ReminderKind.ONE_HOUR, REFERENCE_NOW + timedelta(minutes=30), {"booking_id": 1})
    scheduler = _scheduler(job_store, clock, {ReminderKind.ONE_HOUR: handler})

    assert scheduler.run_pending() == 0
    clock.advance(timedelta(minutes=30))
    assert scheduler.run_pending() == 1


def test_claimed_triggers_are_not_redispatched_while_locked(job_store, clock):
    handler = _recording_handler(result=False)
    job_store.insert(ReminderKind.ONE_HOUR, REFERENCE_NOW, {"booking_id": 1})
    scheduler = _scheduler(job_store, clock, {ReminderKind.ONE_HOUR: handler})

    scheduler.run_pending()
    clock.advance(timedelta(seconds=10))
    scheduler.run_pending()
    assert len(handler.calls) == 1

    clock.advance(timedelta(minutes=2))
    scheduler.run_pending()
    assert len(handler.calls) == 2


def test_trigger_without_handler_is_removed(job_store, clock):
    job_store.insert(ReminderKind.TWENTY_FOUR_HOUR, REFERENCE_NOW, {"booking_id": 1})
    scheduler = _scheduler(job_store, clock, {})

    scheduler.run_pending()

    assert job_store.list_for_booking(1) == []


def test_crashing_handler_does_not_stop_the_batch(job_store, clock):
    survivor = _recording_handler()

    def crashing(trigger):
        raise RuntimeError("boom")

    job_store.insert(ReminderKind.TWENTY_FOUR_HOUR, REFERENCE_NOW, {"booking_id": 1})
    job_store.insert(ReminderKind.ONE_HOUR, REFERENCE_NOW, {"booking_id": 2})
    scheduler = _scheduler(
        job_store,
        clock,
        {ReminderKind.TWENTY_FOUR_HOUR: crashing, ReminderKind.ONE_HOUR: survivor},
    )

    assert scheduler.run_pending() == 2
    assert [t.booking_id for t in survivor.calls] == [2]
    # The crashed trigger stays claimed until its lock runs out.
    [left] = job_store.list_for_booking(1)
    assert left.lock_owner == "test-owner"


def test_background_poll_dispatches_on_worker_threads(clock):
    record = TriggerRecord(
        id=1,
        kind=ReminderKind.ONE_HOUR,
        booking_id=7,
        fire_at=REFERENCE_NOW,
        payload={"booking_id": 7},
        attempts=1,
        lock_owner="test-owner",
        locked_until=REFERENCE_NOW + timedelta(minutes=2),
        last_error=None,
    )
    pending = [record]
    store = MagicMock()
    store.poll_due.side_effect = lambda **kwargs: [pending.pop()] if pending else []

    handled = threading.Event()
    seen = []

    def handler(trigger):
        seen.append((trigger, threading.current_thread().name))
        handled.set()
        return True

    scheduler = _scheduler(store, clock, {ReminderKind.ONE_HOUR: handler}, workers=2)
    scheduler.start()
    try:
        assert scheduler.running
        scheduler.wakeup()
        assert handled.wait(timeout=5)
    finally:
        scheduler.shutdown(wait=True)

    assert not scheduler.running
    [(trigger, thread_name)] = seen
    assert trigger is record
    assert thread_name.startswith("reminder-handler")
    first_poll = store.poll_due.call_args_list[0]
    assert first_poll == call(
        now=REFERENCE_NOW,
        lock_duration=timedelta(minutes=2),
        owner="test-owner",
        limit=2,
    )


def _claimed_record(trigger_id):
    return TriggerRecord(
        id=trigger_id,
        kind=ReminderKind.ONE_HOUR,
        booking_id=trigger_id,
        fire_at=REFERENCE_NOW,
        payload={"booking_id": trigger_id},
        attempts=1,
        lock_owner="test-owner",
        locked_until=REFERENCE_NOW + timedelta(minutes=2),
        last_error=None,
    )


def test_poll_claims_no_more_than_idle_workers(clock):
    release = threading.Event()

    def slow_handler(trigger):
        release.wait(timeout=5)
        return True

    store = MagicMock()
    store.poll_due.side_effect = lambda **kwargs: [
        _claimed_record(i) for i in range(1, kwargs["limit"] + 1)
    ]
    scheduler = _scheduler(store, clock, {ReminderKind.ONE_HOUR: slow_handler}, workers=2)
    scheduler._executor = ThreadPoolExecutor(max_workers=2)
    try:
        busy = scheduler.poll()
        assert len(busy) == 2
        assert store.poll_due.call_args.kwargs["limit"] == 2

        # Both workers are busy: nothing is claimed.
        assert scheduler.poll() == []
        assert store.poll_due.call_count == 1

        release.set()
        wait(busy, timeout=5)
        wait(scheduler.poll(), timeout=5)
        assert store.poll_due.call_count == 2
    finally:
        release.set()
        scheduler.shutdown(wait=True)
