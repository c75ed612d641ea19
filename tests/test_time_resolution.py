"""
Unit tests for appointment start resolution
"""
import logging
from datetime import date, datetime, timezone

import pytest

from garage_booking.scheduler.time_resolution import (
    TIME_PLACEHOLDER,
    InvalidBookingDate,
    active_time_slot,
    display_time,
    parse_clock_time,
    resolve_appointment_start,
    resolve_booking_start,
)
from conftest import make_booking_ref, make_slot

BOOKING_DAY = date(2026, 3, 10)


class TestParseClockTime:
    def test_two_digit_hour(self):
        assert parse_clock_time("10:30") == datetime(2026, 1, 1, 10, 30).time()

    def test_single_digit_hour_with_range_suffix(self):
        assert parse_clock_time("7:05 - 8:00") == datetime(2026, 1, 1, 7, 5).time()

    @pytest.mark.parametrize("value", [None, "", "noon", "25:00", "10:75", "10h30"])
    def test_rejects_unusable_values(self, value):
        assert parse_clock_time(value) is None


class TestResolveAppointmentStart:
    def test_uses_first_open_slot(self):
        slots = [make_slot("08:00", is_closed=True), make_slot("10:00"), make_slot("14:00")]

        assert resolve_appointment_start(BOOKING_DAY, slots) == datetime(2026, 3, 10, 10, 0)

    def test_all_slots_closed_defaults_to_nine_with_warning(self, caplog):
        slots = [make_slot("10:00", is_closed=True), make_slot("12:00", is_closed=True)]

        with caplog.at_level(logging.WARNING):
            start = resolve_appointment_start(BOOKING_DAY, slots, booking_id=7)

        assert start == datetime(2026, 3, 10, 9, 0)
        assert "no open time slot" in caplog.text

    def test_unparseable_slot_time_defaults_to_nine(self, caplog):
        with caplog.at_level(logging.WARNING):
            start = resolve_appointment_start(BOOKING_DAY, [make_slot("morning")])

        assert start == datetime(2026, 3, 10, 9, 0)
        assert "morning" in caplog.text

    def test_time_slots_take_precedence_over_legacy_string(self):
        start = resolve_appointment_start(BOOKING_DAY, [make_slot("15:00")], "10:00 - 11:00")

        assert start == datetime(2026, 3, 10, 15, 0)

    def test_legacy_time_slot_string(self):
        assert resolve_appointment_start(BOOKING_DAY, [], "10:30 - 11:30") == datetime(
            2026, 3, 10, 10, 30
        )

    def test_bad_legacy_string_defaults_to_nine(self, caplog):
        with caplog.at_level(logging.WARNING):
            start = resolve_appointment_start(BOOKING_DAY, None, "whenever")

        assert start == datetime(2026, 3, 10, 9, 0)
        assert "whenever" in caplog.text

    def test_no_time_information_defaults_to_nine(self, caplog):
        with caplog.at_level(logging.WARNING):
            start = resolve_appointment_start(BOOKING_DAY)

        assert start == datetime(2026, 3, 10, 9, 0)
        assert "no time information" in caplog.text

    def test_datetime_input_drops_existing_time_and_seconds(self):
        start = resolve_appointment_start(datetime(2026, 3, 10, 0, 0, 42, 500), [make_slot("10:00")])

        assert start == datetime(2026, 3, 10, 10, 0)
        assert start.second == 0 and start.microsecond == 0

    def test_iso_string_date(self):
        assert resolve_appointment_start("2026-03-10", [make_slot("11:15")]) == datetime(
            2026, 3, 10, 11, 15
        )

    def test_aware_datetime_is_brought_to_local_time(self):
        value = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        expected_day = value.astimezone().date()

        assert resolve_appointment_start(value, [make_slot("10:00")]).date() == expected_day

    @pytest.mark.parametrize("value", [None, "", "not-a-date", 12345])
    def test_invalid_date_is_a_hard_failure(self, value):
        with pytest.raises(InvalidBookingDate):
            resolve_appointment_start(value, [make_slot("10:00")])

    def test_resolve_booking_start_reads_booking_attributes(self):
        booking = make_booking_ref(booking_date=BOOKING_DAY, selected_time_slot="16:45 - 17:30")

        assert resolve_booking_start(booking) == datetime(2026, 3, 10, 16, 45)


class TestDisplayTime:
    def test_active_slot_window(self):
        booking = make_booking_ref(time_slots=[make_slot("10:00", "18:00")])

        assert display_time(booking) == "10:00 - 18:00"

    def test_falls_back_to_legacy_string(self):
        booking = make_booking_ref(
            time_slots=[make_slot(is_closed=True)], selected_time_slot="09:30 - 10:30"
        )

        assert display_time(booking) == "09:30 - 10:30"

    def test_placeholder_when_nothing_known(self):
        assert display_time(make_booking_ref()) == TIME_PLACEHOLDER

    def test_active_time_slot_none_for_empty(self):
        assert active_time_slot([]) is None
        assert active_time_slot(None) is None
