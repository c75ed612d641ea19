"""
Pytest configuration and fixtures
"""
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from garage_booking.db.enums import BookingStatus, Weekday
from garage_booking.db.init_db import init_db
from garage_booking.db.models import (
    Booking,
    BookingTimeSlot,
    Customer,
    Garage,
    GarageTimeSlot,
    Service,
)
from garage_booking.db.session import Base
from garage_booking.scheduler.job_store import JobStore


# Monday 9 March 2026, 08:00
REFERENCE_NOW = datetime(2026, 3, 9, 8, 0)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


def make_slot(open_time="10:00", close_time="18:00", is_closed=False, day=Weekday.TUESDAY):
    return SimpleNamespace(day=day, open=open_time, close=close_time, is_closed=is_closed)


def make_booking_ref(booking_id=1, booking_date=None, time_slots=None, selected_time_slot=None,
                     status=BookingStatus.PENDING):
    """Lightweight stand-in for a Booking row, as seen by the orchestrator."""
    return SimpleNamespace(
        id=booking_id,
        date=booking_date,
        time_slots=time_slots or [],
        selected_time_slot=selected_time_slot,
        status=status,
    )


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(REFERENCE_NOW)


@pytest.fixture
def job_store(session_factory, clock):
    return JobStore(session_factory, clock=clock)


@pytest.fixture
def sample_garage(test_db_session):
    garage = Garage(
        name="Northside Motors",
        phone="+15550001111",
        address="12 Ring Road",
        time_slots=[
            GarageTimeSlot(position=index, day=day, open="08:00", close="18:00", is_closed=False)
            for index, day in enumerate(list(Weekday)[:6])
        ]
        + [GarageTimeSlot(position=6, day=Weekday.SUNDAY, open="", close="", is_closed=True)],
    )
    test_db_session.add(garage)
    test_db_session.commit()
    test_db_session.refresh(garage)
    return garage


@pytest.fixture
def sample_customer(test_db_session):
    customer = Customer(name="Jane Doe", email="jane@example.com", phone="+15551234567")
    test_db_session.add(customer)
    test_db_session.commit()
    test_db_session.refresh(customer)
    return customer


@pytest.fixture
def sample_service(test_db_session, sample_garage):
    service = Service(garage_id=sample_garage.id, name="Oil change", price=49.5, duration=45)
    test_db_session.add(service)
    test_db_session.commit()
    test_db_session.refresh(service)
    return service


@pytest.fixture
def sample_booking(test_db_session, sample_garage, sample_customer, sample_service):
    """Booking for Tuesday 10 March 2026 at 10:00"""
    booking = Booking(
        customer_id=sample_customer.id,
        garage_id=sample_garage.id,
        date=date(2026, 3, 10),
        selected_time_slot="10:00 - 11:00",
        status=BookingStatus.CONFIRMED,
        services=[sample_service],
        time_slots=[
            BookingTimeSlot(position=0, day=Weekday.TUESDAY, open="10:00", close="11:00"),
        ],
        total_amount=sample_service.price,
    )
    test_db_session.add(booking)
    test_db_session.commit()
    test_db_session.refresh(booking)
    return booking


# Test markers
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
