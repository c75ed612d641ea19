from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from garage_booking.db.models import Booking
from garage_booking.db.session import get_db
from garage_booking.scheduler.time_resolution import display_time
from garage_booking.schemas.booking import (
    BookingCreateRequest,
    BookingResponse,
    ReminderTriggerItem,
    RescheduleRequest,
    StatusUpdate,
)
from garage_booking.schemas.common import APIResponse
from garage_booking.services import booking_service
from garage_booking.services.reminder_service import get_job_store

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        booking_id=booking.id,
        date=booking.date,
        time=display_time(booking),
        status=booking.status,
        reminder_sent_one_hour=booking.reminder_sent_one_hour,
        reminder_sent_twenty_four_hour=booking.reminder_sent_twenty_four_hour,
    )


@router.post("/", response_model=APIResponse[BookingResponse], status_code=201)
def create_booking(payload: BookingCreateRequest, db: Session = Depends(get_db)):
    booking = booking_service.create_booking(
        db=db,
        customer_id=payload.customer_id,
        garage_id=payload.garage_id,
        service_ids=payload.service_ids,
        booking_date=payload.date,
        selected_time_slot=payload.selected_time_slot,
        pickup_drop_opted=payload.pickup_drop_opted,
        pickup_address=payload.pickup_address,
        drop_address=payload.drop_address,
        notes=payload.notes,
    )
    return APIResponse.ok(_to_response(booking))


@router.put("/{booking_id}/reschedule", response_model=APIResponse[BookingResponse])
def reschedule(booking_id: int, payload: RescheduleRequest, db: Session = Depends(get_db)):
    booking = booking_service.reschedule_booking(
        db=db,
        booking_id=booking_id,
        new_date=payload.date,
        selected_time_slot=payload.selected_time_slot,
    )
    return APIResponse.ok(_to_response(booking))


@router.patch("/{booking_id}/status", response_model=APIResponse[BookingResponse])
def update_status(booking_id: int, payload: StatusUpdate, db: Session = Depends(get_db)):
    booking = booking_service.update_booking_status(
        db=db,
        booking_id=booking_id,
        new_status=payload.status,
    )
    return APIResponse.ok(_to_response(booking))


@router.patch("/{booking_id}/cancel", response_model=APIResponse[BookingResponse])
def cancel(booking_id: int, db: Session = Depends(get_db)):
    booking = booking_service.cancel_booking(db=db, booking_id=booking_id)
    return APIResponse.ok(_to_response(booking))


@router.get("/{booking_id}/reminders", response_model=APIResponse[List[ReminderTriggerItem]])
def list_reminders(booking_id: int):
    triggers = get_job_store().list_for_booking(booking_id)
    return APIResponse.ok(
        [
            ReminderTriggerItem(
                trigger_id=trigger.id,
                kind=trigger.kind,
                fire_at=trigger.fire_at,
                attempts=trigger.attempts,
                locked_until=trigger.locked_until,
                last_error=trigger.last_error,
            )
            for trigger in triggers
        ]
    )
