import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field

from garage_booking.db.enums import BookingStatus, ReminderKind


class BookingCreateRequest(BaseModel):
    customer_id: int
    garage_id: int
    service_ids: list[int] = Field(min_length=1)
    date: dt.date
    selected_time_slot: str | None = None
    pickup_drop_opted: bool = False
    pickup_address: str | None = None
    drop_address: str | None = None
    notes: str | None = None


class RescheduleRequest(BaseModel):
    date: dt.date
    selected_time_slot: str | None = None


class StatusUpdate(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    booking_id: int
    date: dt.date
    time: str
    status: BookingStatus
    reminder_sent_one_hour: bool
    reminder_sent_twenty_four_hour: bool


class ReminderTriggerItem(BaseModel):
    trigger_id: int
    kind: ReminderKind
    fire_at: datetime
    attempts: int
    locked_until: datetime | None = None
    last_error: str | None = None
