"""Booking-related service helpers."""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from garage_booking.core.config import FRONTEND_URL
from garage_booking.core.domain_exceptions import DomainException
from garage_booking.core.error_codes import ErrorCode
from garage_booking.db.enums import BookingStatus, Weekday
from garage_booking.db.models import Booking, BookingTimeSlot, Customer, Garage, Service
from garage_booking.scheduler.time_resolution import display_time, parse_clock_time
from garage_booking.services.notification_service import send_notification
from garage_booking.services.reminder_service import (
    cancel_reminders_for_booking,
    schedule_reminders_for_booking,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}
RESCHEDULABLE_STATUSES = {BookingStatus.PENDING, BookingStatus.CONFIRMED}

STATUS_MESSAGES = {
    BookingStatus.CONFIRMED: "Your booking has been confirmed!",
    BookingStatus.IN_PROGRESS: "Work on your vehicle has begun.",
    BookingStatus.COMPLETED: "Your service has been completed!",
    BookingStatus.CANCELLED: "Your booking has been cancelled.",
}


def _recipient(booking: Booking) -> str | None:
    customer = booking.customer
    return customer.email or customer.phone


def send_booking_confirmation(booking: Booking) -> None:
    """Tell the customer their booking was received. Never raises."""
    try:
        recipient = _recipient(booking)
        if not recipient:
            logger.warning("Booking %s has no customer contact; confirmation not sent", booking.id)
            return

        send_notification(
            recipient,
            "Your Booking Confirmation",
            "bookingConfirmation",
            {
                "name": booking.customer.name or "there",
                "bookingId": str(booking.id),
                "garageName": booking.garage.name,
                "garageAddress": booking.garage.address or "N/A",
                "garagePhone": booking.garage.phone or "N/A",
                "date": booking.date.strftime("%A, %B %d, %Y"),
                "time": display_time(booking),
                "services": [service.name for service in booking.services],
                "totalAmount": f"{booking.total_amount:.2f}",
                "pickupDropService": "Yes" if booking.pickup_drop_opted else "No",
                "dashboardUrl": f"{FRONTEND_URL}/dashboard/bookings/{booking.id}",
            },
        )
    except Exception:
        logger.exception("Error sending booking confirmation for booking %s", booking.id)


def send_booking_status_update(booking: Booking) -> None:
    """Tell the customer their booking moved to a new status. Never raises."""
    try:
        recipient = _recipient(booking)
        if not recipient:
            logger.warning("Booking %s has no customer contact; status update not sent", booking.id)
            return

        send_notification(
            recipient,
            f"Booking Status Update: {booking.status.value}",
            "bookingStatusUpdate",
            {
                "name": booking.customer.name or "there",
                "bookingId": str(booking.id),
                "garageName": booking.garage.name,
                "status": booking.status.value,
                "statusMessage": STATUS_MESSAGES.get(
                    booking.status, "Your booking status has been updated."
                ),
                "date": booking.date.strftime("%A, %B %d, %Y"),
                "notes": booking.notes or "No additional notes.",
                "dashboardUrl": f"{FRONTEND_URL}/dashboard/bookings/{booking.id}",
            },
        )
    except Exception:
        logger.exception("Error sending status update for booking %s", booking.id)


def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.scalar(
        select(Booking)
        .options(selectinload(Booking.time_slots), selectinload(Booking.services))
        .where(Booking.id == booking_id)
    )
    if booking is None:
        raise DomainException(
            code=ErrorCode.BOOKING_NOT_FOUND,
            message="Booking not found."
        )
    return booking


def _build_time_slots(
    garage: Garage,
    booking_date: date,
    selected_time_slot: str | None,
) -> list[BookingTimeSlot]:
    """Opening window for the booked day, narrowed to the selected slot if given."""
    weekday = Weekday.from_date(booking_date)

    if selected_time_slot:
        start_text, _, end_text = selected_time_slot.partition("-")
        if parse_clock_time(start_text) is None:
            raise DomainException(
                code=ErrorCode.INVALID_TIME_SLOT,
                message="Time slot must look like 'HH:MM - HH:MM'."
            )
        return [
            BookingTimeSlot(
                position=0,
                day=weekday,
                open=start_text.strip(),
                close=end_text.strip(),
                is_closed=False,
            )
        ]

    if not garage.time_slots:
        return []

    day_timing = next((slot for slot in garage.time_slots if slot.day == weekday), None)
    if day_timing is None or day_timing.is_closed:
        raise DomainException(
            code=ErrorCode.INVALID_TIME_SLOT,
            message=f"{garage.name} is closed on {weekday.value}."
        )
    return [
        BookingTimeSlot(
            position=0,
            day=weekday,
            open=day_timing.open,
            close=day_timing.close,
            is_closed=False,
        )
    ]


def create_booking(
    db: Session,
    customer_id: int,
    garage_id: int,
    service_ids: list[int],
    booking_date: date,
    selected_time_slot: str | None = None,
    pickup_drop_opted: bool = False,
    pickup_address: str | None = None,
    drop_address: str | None = None,
    notes: str | None = None,
) -> Booking:
    """Create a booking and install its reminders."""
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise DomainException(code=ErrorCode.CUSTOMER_NOT_FOUND, message="Customer not found.")

    garage = db.scalar(
        select(Garage).options(selectinload(Garage.time_slots)).where(Garage.id == garage_id)
    )
    if garage is None:
        raise DomainException(code=ErrorCode.GARAGE_NOT_FOUND, message="Garage not found.")

    services = db.scalars(
        select(Service)
        .where(Service.id.in_(service_ids))
        .where(Service.garage_id == garage_id)
    ).all()
    if not services or len(services) != len(set(service_ids)):
        raise DomainException(
            code=ErrorCode.SERVICE_NOT_FOUND,
            message="One or more services were not found for this garage."
        )

    time_slots = _build_time_slots(garage, booking_date, selected_time_slot)

    try:
        booking = Booking(
            customer_id=customer.id,
            garage_id=garage.id,
            date=booking_date,
            selected_time_slot=selected_time_slot,
            status=BookingStatus.PENDING,
            pickup_drop_opted=pickup_drop_opted,
            pickup_address=pickup_address if pickup_drop_opted else None,
            drop_address=drop_address if pickup_drop_opted else None,
            notes=notes,
            total_amount=sum(service.price for service in services),
            services=list(services),
            time_slots=time_slots,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Booking created",
        extra={
            "booking_id": booking.id,
            "customer_id": customer_id,
        },
    )

    schedule_reminders_for_booking(booking)
    send_booking_confirmation(booking)
    return booking


def update_booking_status(db: Session, booking_id: int, new_status: BookingStatus) -> Booking:
    """Update booking status when the requested transition is allowed."""
    booking = _get_booking(db, booking_id)

    allowed_next_statuses = ALLOWED_TRANSITIONS.get(booking.status, set())
    if new_status not in allowed_next_statuses:
        raise DomainException(
            code=ErrorCode.INVALID_STATUS,
            message="Invalid status transition."
        )

    try:
        booking.status = new_status
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    # Inactive statuses clear reminders; active ones keep them in step.
    schedule_reminders_for_booking(booking)
    send_booking_status_update(booking)
    return booking


def reschedule_booking(
    db: Session,
    booking_id: int,
    new_date: date,
    selected_time_slot: str | None = None,
) -> Booking:
    booking = _get_booking(db, booking_id)

    if booking.status not in RESCHEDULABLE_STATUSES:
        raise DomainException(
            code=ErrorCode.INVALID_STATUS,
            message="Only pending or confirmed bookings can be rescheduled."
        )

    time_slots = _build_time_slots(booking.garage, new_date, selected_time_slot)

    try:
        booking.date = new_date
        booking.selected_time_slot = selected_time_slot
        booking.time_slots = time_slots

        # A new appointment time deserves fresh reminders.
        booking.reset_reminders()

        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    schedule_reminders_for_booking(booking)
    return booking


def cancel_booking(db: Session, booking_id: int) -> Booking:
    booking = _get_booking(db, booking_id)

    if booking.status not in RESCHEDULABLE_STATUSES:
        raise DomainException(
            code=ErrorCode.INVALID_STATUS,
            message="Only pending or confirmed bookings can be cancelled."
        )

    try:
        booking.status = BookingStatus.CANCELLED
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    cancel_reminders_for_booking(booking.id)
    send_booking_status_update(booking)
    return booking
