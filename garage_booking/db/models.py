"""SQLAlchemy ORM models."""

import datetime as dt
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from garage_booking.db.enums import BookingStatus, ReminderKind, Weekday
from garage_booking.db.session import Base


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


booking_services = Table(
    "booking_services",
    Base.metadata,
    Column("booking_id", ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class Garage(Base):
    """Represents a workshop that accepts bookings."""

    __tablename__ = "garages"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    time_slots: Mapped[list["GarageTimeSlot"]] = relationship(
        back_populates="garage",
        cascade="all, delete-orphan",
        order_by="GarageTimeSlot.position",
    )
    services: Mapped[list["Service"]] = relationship(back_populates="garage")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="garage")


class GarageTimeSlot(Base):
    """Weekly opening hours for a garage."""

    __tablename__ = "garage_time_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    garage_id: Mapped[int] = mapped_column(
        ForeignKey("garages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    day: Mapped[Weekday] = mapped_column(
        Enum(Weekday, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
    )
    open: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    close: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    garage: Mapped["Garage"] = relationship(back_populates="time_slots")


class Customer(Base):
    """Represents a garage customer."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), index=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    bookings: Mapped[list["Booking"]] = relationship(back_populates="customer")


class Service(Base):
    """A bookable service offered by a garage."""

    __tablename__ = "services"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    garage_id: Mapped[int] = mapped_column(
        ForeignKey("garages.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    garage: Mapped["Garage"] = relationship(back_populates="services")


@dataclass(frozen=True)
class ReminderSent:
    one_hour: bool = False
    twenty_four_hour: bool = False


class Booking(Base):
    """Represents a service appointment at a garage."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"),
        nullable=False,
        index=True,
    )
    garage_id: Mapped[int] = mapped_column(
        ForeignKey("garages.id"),
        nullable=False,
        index=True,
    )

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # Legacy "HH:MM - HH:MM" string kept for bookings created before time slots existed.
    selected_time_slot: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, values_callable=_enum_values, length=32),
        nullable=False,
        default=BookingStatus.PENDING,
        server_default=text("'pending'"),
    )

    pickup_drop_opted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pickup_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    drop_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    reminder_sent_one_hour: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )
    reminder_sent_twenty_four_hour: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    time_slots: Mapped[list["BookingTimeSlot"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingTimeSlot.position",
    )
    services: Mapped[list["Service"]] = relationship(secondary=booking_services)
    customer: Mapped["Customer"] = relationship(back_populates="bookings")
    garage: Mapped["Garage"] = relationship(back_populates="bookings")

    @property
    def service_ids(self) -> list[int]:
        return [service.id for service in self.services]

    @property
    def reminder_sent(self) -> ReminderSent:
        return ReminderSent(
            one_hour=self.reminder_sent_one_hour,
            twenty_four_hour=self.reminder_sent_twenty_four_hour,
        )

    def reminder_already_sent(self, kind: ReminderKind) -> bool:
        return bool(getattr(self, kind.flag_attr))

    def mark_reminder_sent(self, kind: ReminderKind) -> None:
        setattr(self, kind.flag_attr, True)

    def reset_reminders(self) -> None:
        self.reminder_sent_one_hour = False
        self.reminder_sent_twenty_four_hour = False


class BookingTimeSlot(Base):
    """Opening window copied onto a booking when it is made."""

    __tablename__ = "booking_time_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    day: Mapped[Weekday] = mapped_column(
        Enum(Weekday, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
    )
    open: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    close: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    booking: Mapped["Booking"] = relationship(back_populates="time_slots")


class ScheduledTrigger(Base):
    """A persisted obligation to run one reminder handler for one booking."""

    __tablename__ = "booking_reminder_triggers"

    id: Mapped[int] = mapped_column(primary_key=True)
    kind: Mapped[ReminderKind] = mapped_column(
        Enum(ReminderKind, native_enum=False, values_callable=_enum_values, length=32),
        nullable=False,
    )
    # Plain reference: deleting a booking must not cascade into the store.
    booking_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    fire_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    lock_owner: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
