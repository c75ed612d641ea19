"""Durable store of pending reminder triggers.

Triggers live in ``booking_reminder_triggers``. A trigger is *unclaimed* while
``locked_until`` is empty or in the past. Claiming is a conditional UPDATE on
that predicate, so when several scheduler processes poll the same table only
one of them sees a rowcount of 1 for a given trigger. Expired locks make
triggers from crashed processes claimable again.

Store methods raise ``SQLAlchemyError`` on database failure; callers decide
how to log it.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from garage_booking.core.clock import Clock, system_clock
from garage_booking.db.enums import ReminderKind
from garage_booking.db.models import ScheduledTrigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerRecord:
    """Detached snapshot of a trigger row."""

    id: int
    kind: ReminderKind
    booking_id: int
    fire_at: datetime
    payload: dict[str, Any]
    attempts: int
    lock_owner: str | None
    locked_until: datetime | None
    last_error: str | None

    @classmethod
    def from_row(cls, row: ScheduledTrigger) -> "TriggerRecord":
        return cls(
            id=row.id,
            kind=ReminderKind(row.kind),
            booking_id=row.booking_id,
            fire_at=row.fire_at,
            payload=dict(row.payload or {}),
            attempts=row.attempts,
            lock_owner=row.lock_owner,
            locked_until=row.locked_until,
            last_error=row.last_error,
        )


def _unlocked(now: datetime):
    return or_(
        ScheduledTrigger.locked_until.is_(None),
        ScheduledTrigger.locked_until <= now,
    )


class JobStore:
    def __init__(self, session_factory: sessionmaker, clock: Clock = system_clock) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _session(self) -> Session:
        return self._session_factory()

    def insert(self, kind: ReminderKind, fire_at: datetime, payload: dict[str, Any]) -> int:
        """Persist a new trigger. Duplicates are the caller's concern."""
        with self._session() as db:
            trigger = ScheduledTrigger(
                kind=kind,
                booking_id=int(payload["booking_id"]),
                fire_at=fire_at,
                payload=dict(payload),
            )
            db.add(trigger)
            db.commit()
            logger.info(
                "Stored %s trigger %d for booking %s at %s",
                kind.value,
                trigger.id,
                trigger.booking_id,
                fire_at.isoformat(),
            )
            return trigger.id

    def fire_immediately(
        self,
        kind: ReminderKind,
        payload: dict[str, Any],
        now: datetime | None = None,
    ) -> int:
        """Store a trigger that is already due on the next poll."""
        return self.insert(kind, now or self._clock.now(), payload)

    def cancel(
        self,
        booking_id: int,
        kinds: Iterable[ReminderKind] | None = None,
        now: datetime | None = None,
    ) -> int:
        """Delete unclaimed triggers of ``kinds`` for a booking. Returns the count."""
        kinds = list(kinds) if kinds is not None else list(ReminderKind)
        now = now or self._clock.now()
        with self._session() as db:
            result = db.execute(
                delete(ScheduledTrigger)
                .where(ScheduledTrigger.booking_id == booking_id)
                .where(ScheduledTrigger.kind.in_(kinds))
                .where(_unlocked(now))
                .execution_options(synchronize_session=False)
            )
            db.commit()
            removed = result.rowcount or 0

        if removed:
            logger.info("Cancelled %d reminder trigger(s) for booking %s", removed, booking_id)
        return removed

    def poll_due(
        self,
        now: datetime,
        lock_duration: timedelta,
        owner: str,
        limit: int = 50,
    ) -> list[TriggerRecord]:
        """Claim due, unlocked triggers for ``owner`` and return them."""
        locked_until = now + lock_duration
        claimed_ids: list[int] = []

        with self._session() as db:
            candidate_ids = db.scalars(
                select(ScheduledTrigger.id)
                .where(ScheduledTrigger.fire_at <= now)
                .where(_unlocked(now))
                .order_by(ScheduledTrigger.fire_at.asc(), ScheduledTrigger.id.asc())
                .limit(limit)
            ).all()

            for trigger_id in candidate_ids:
                result = db.execute(
                    update(ScheduledTrigger)
                    .where(ScheduledTrigger.id == trigger_id)
                    .where(_unlocked(now))
                    .values(
                        lock_owner=owner,
                        locked_until=locked_until,
                        attempts=ScheduledTrigger.attempts + 1,
                        last_run_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    claimed_ids.append(trigger_id)
            db.commit()

            if not claimed_ids:
                return []

            rows = db.scalars(
                select(ScheduledTrigger)
                .where(ScheduledTrigger.id.in_(claimed_ids))
                .where(ScheduledTrigger.lock_owner == owner)
                .order_by(ScheduledTrigger.fire_at.asc(), ScheduledTrigger.id.asc())
            ).all()
            return [TriggerRecord.from_row(row) for row in rows]

    def remove(self, trigger_id: int) -> bool:
        with self._session() as db:
            result = db.execute(
                delete(ScheduledTrigger)
                .where(ScheduledTrigger.id == trigger_id)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return bool(result.rowcount)

    def record_failure(self, trigger_id: int, error: str, max_attempts: int) -> bool:
        """Note a failed run.

        The claim is released and the trigger rescheduled for when its lease
        would have expired, so a later ``cancel`` (e.g. on reschedule) can
        still remove it. Returns False when the trigger was dropped after
        ``max_attempts`` runs (or no longer exists).
        """
        with self._session() as db:
            trigger = db.get(ScheduledTrigger, trigger_id)
            if trigger is None:
                return False

            kind, booking_id, attempts = trigger.kind, trigger.booking_id, trigger.attempts
            if attempts >= max_attempts:
                db.delete(trigger)
                db.commit()
                logger.error(
                    "Dropping %s trigger %d for booking %s after %d attempts: %s",
                    kind.value,
                    trigger_id,
                    booking_id,
                    attempts,
                    error,
                )
                return False

            retry_at = trigger.locked_until or self._clock.now()
            trigger.last_error = error
            trigger.fire_at = retry_at
            trigger.lock_owner = None
            trigger.locked_until = None
            db.commit()
            logger.warning(
                "%s trigger %d for booking %s failed (attempt %d/%d); retrying at %s",
                kind.value,
                trigger_id,
                booking_id,
                attempts,
                max_attempts,
                retry_at.isoformat(),
            )
            return True

    def list_for_booking(self, booking_id: int) -> list[TriggerRecord]:
        with self._session() as db:
            rows = db.scalars(
                select(ScheduledTrigger)
                .where(ScheduledTrigger.booking_id == booking_id)
                .order_by(ScheduledTrigger.fire_at.asc(), ScheduledTrigger.id.asc())
            ).all()
            return [TriggerRecord.from_row(row) for row in rows]
