"""Tests for availability matching, slot listing and day status."""
from datetime import date, time, timedelta

import pytest

from core.restaurant_config import DEFAULT_OPENING_HOURS, RestaurantConfig
from domain.enums import DayStatus, Rejection, ReservationStatus
from services.reservation_service import ReservationService


MONDAY = date(2026, 3, 9)


@pytest.mark.integration
class TestMatching:
    """Test matching a request to a table."""

    def test_best_fit_table(self, service, add_tables):
        """Tables of 2, 4 and 8 free; a party of 3 gets the 4-top."""
        two, four, eight = add_tables(2, 4, 8)

        match = service.check_availability(MONDAY, time(19, 0), 3)

        assert match.available
        assert match.table.id == four.id
        assert match.duration_minutes == 90

    def test_ties_broken_by_lowest_id(self, service, add_tables):
        first, second = add_tables(4, 4)
        match = service.check_availability(MONDAY, time(19, 0), 4)
        assert match.table.id == first.id

    def test_party_larger_than_every_table(self, service, add_tables):
        add_tables(2, 4, 8)

        match = service.check_availability(MONDAY, time(19, 0), 9)

        assert not match.available
        assert match.rejection == Rejection.FULLY_BOOKED

    def test_no_tables_at_all(self, service):
        match = service.check_availability(MONDAY, time(19, 0), 2)
        assert match.rejection == Rejection.FULLY_BOOKED

    def test_too_soon(self, service, add_tables):
        add_tables(4)
        # Clock is 2 March 09:00; 10:30 the same day is under two hours away
        match = service.check_availability(date(2026, 3, 2), time(10, 30), 2)
        assert match.rejection == Rejection.OUT_OF_WINDOW
        assert "2 hours" in match.message

    def test_exactly_min_hours_ahead(self, service, add_tables):
        add_tables(4)
        match = service.check_availability(date(2026, 3, 2), time(11, 0), 2)
        assert match.available

    def test_too_far_ahead(self, service, add_tables, clock):
        add_tables(4)
        last_day = clock.now.date() + timedelta(days=30)

        assert service.check_availability(last_day, time(19, 0), 2).available
        match = service.check_availability(last_day + timedelta(days=1), time(19, 0), 2)
        assert match.rejection == Rejection.OUT_OF_WINDOW
        assert "30 days" in match.message

    def test_window_checked_before_slot(self, service, add_tables):
        add_tables(4)
        match = service.check_availability(date(2026, 3, 2), time(9, 15), 2)
        assert match.rejection == Rejection.OUT_OF_WINDOW

    @pytest.mark.parametrize("start", [time(19, 15), time(21, 0), time(10, 30)])
    def test_not_a_slot(self, service, add_tables, start):
        add_tables(4)
        match = service.check_availability(MONDAY, start, 2)
        assert match.rejection == Rejection.INVALID_SLOT

    def test_invalid_party_size(self, service, add_tables):
        add_tables(4)
        with pytest.raises(ValueError, match="at least 1"):
            service.check_availability(MONDAY, time(19, 0), 0)

    def test_inactive_tables_are_skipped(self, service, add_tables):
        small, large = add_tables(4, 6)
        service.inventory.remove_table(small.id)

        match = service.check_availability(MONDAY, time(19, 0), 2)

        assert match.table.id == large.id

    def test_confirmed_reservation_blocks_overlap(self, service, add_tables, book):
        small, large = add_tables(4, 6)
        assert book(time(19, 0), 4).reservation.table_id == small.id

        assert service.check_availability(MONDAY, time(20, 0), 4).table.id == large.id
        assert service.check_availability(MONDAY, time(18, 0), 4).table.id == large.id

    def test_back_to_back_is_allowed(self, service, add_tables, book):
        (table,) = add_tables(4)
        book(time(19, 0), 4)

        assert service.check_availability(MONDAY, time(20, 30), 4).table.id == table.id
        assert service.check_availability(MONDAY, time(17, 30), 4).table.id == table.id
        assert service.check_availability(MONDAY, time(18, 0), 4).rejection == Rejection.FULLY_BOOKED

    def test_pending_reservation_does_not_block(self, service, add_tables, contact):
        (table,) = add_tables(4)
        result = service.create_reservation(MONDAY, time(19, 0), 4, contact)
        assert result.reservation.status == ReservationStatus.PENDING

        assert service.check_availability(MONDAY, time(19, 0), 4).table.id == table.id


@pytest.mark.integration
class TestSlotListing:
    """Test listing bookable start times."""

    def test_all_slots_when_empty(self, service, add_tables):
        add_tables(4)
        slots = service.list_available_slots(MONDAY)
        assert slots[0] == time(11, 0)
        assert slots[-1] == time(20, 30)
        assert len(slots) == 20

    def test_repeated_calls_are_identical(self, service, add_tables):
        add_tables(2, 4)
        assert service.list_available_slots(MONDAY, 2) == service.list_available_slots(MONDAY, 2)

    def test_booked_slots_removed(self, service, add_tables, book):
        add_tables(4)
        book(time(19, 0), 2)

        slots = service.list_available_slots(MONDAY)

        assert time(17, 30) in slots
        for blocked in (time(18, 0), time(19, 0), time(20, 0)):
            assert blocked not in slots
        assert time(20, 30) in slots

    def test_party_size_filter(self, service, add_tables, book):
        add_tables(2, 6)
        book(time(19, 0), 5)

        assert time(19, 0) in service.list_available_slots(MONDAY, 2)
        assert time(19, 0) not in service.list_available_slots(MONDAY, 5)

    def test_today_starts_after_min_notice(self, service, add_tables, clock, config):
        add_tables(4)
        clock.set(date(2026, 3, 2), time(12, 10), config.tz)

        slots = service.list_available_slots(date(2026, 3, 2))

        assert slots[0] == time(14, 30)

    def test_out_of_window_date(self, service, add_tables):
        add_tables(4)
        assert service.list_available_slots(MONDAY + timedelta(days=60)) == []
        assert service.list_available_slots(date(2026, 3, 1)) == []


@pytest.mark.integration
class TestDayStatus:
    """Test the explanation for empty slot lists."""

    def test_available(self, service, add_tables):
        add_tables(4)
        assert service.day_status(MONDAY) == DayStatus.AVAILABLE

    def test_out_of_window(self, service, add_tables):
        add_tables(4)
        assert service.day_status(MONDAY + timedelta(days=60)) == DayStatus.OUT_OF_WINDOW

    def test_today_after_last_slot(self, service, add_tables, clock, config):
        add_tables(4)
        clock.set(date(2026, 3, 2), time(19, 0), config.tz)
        assert service.day_status(date(2026, 3, 2)) == DayStatus.OUT_OF_WINDOW

    def test_closed(self, session_factory, clock, add_tables):
        config = RestaurantConfig.from_dict({"opening_hours": dict(DEFAULT_OPENING_HOURS, monday="closed")})
        closed_service = ReservationService(session_factory, config, clock=clock)
        add_tables(4)

        assert closed_service.list_available_slots(MONDAY) == []
        assert closed_service.day_status(MONDAY) == DayStatus.CLOSED

    def test_fully_booked(self, session_factory, short_day_config, clock, contact):
        short_service = ReservationService(session_factory, short_day_config, auto_confirm=True, clock=clock)
        short_service.inventory.add_table("T1", 4)
        assert short_service.list_available_slots(MONDAY) == [time(18, 0)]

        assert short_service.create_reservation(MONDAY, time(18, 0), 2, contact).success

        assert short_service.list_available_slots(MONDAY) == []
        assert short_service.day_status(MONDAY) == DayStatus.FULLY_BOOKED
