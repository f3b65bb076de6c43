"""Tests for the reservation service facade and lifecycle operations."""
from contextlib import contextmanager
from datetime import date, time, timedelta
from itertools import combinations

import pytest

from core.restaurant_config import (
    BusinessCalendar,
    ConfigurationError,
    DayHours,
    ReservationPolicy,
    RestaurantConfig,
)
from core.utils_datetime import time_to_minutes
from db.session import session_scope
from domain.enums import Actor, AuditAction, Rejection, ReservationStatus
from services.audit import audit_entries
from services.reservation_service import ReservationNotFoundError, ReservationService


MONDAY = date(2026, 3, 9)


@pytest.mark.integration
class TestCreateReservation:
    """Test creating reservations."""

    def test_pending_by_default(self, service, add_tables, contact):
        (table,) = add_tables(4)

        result = service.create_reservation(MONDAY, time(19, 0), 2, contact)

        assert result.success
        assert result.reservation.status == ReservationStatus.PENDING
        assert result.reservation.table_id == table.id
        assert result.reservation.confirmed_at is None

    def test_auto_confirm(self, auto_service, add_tables, contact):
        add_tables(4)
        result = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact)
        assert result.reservation.status == ReservationStatus.CONFIRMED

    @pytest.mark.parametrize("day,start,party_size,rejection", [
        (date(2026, 3, 2), time(10, 0), 2, Rejection.OUT_OF_WINDOW),
        (date(2026, 5, 1), time(19, 0), 2, Rejection.OUT_OF_WINDOW),
        (MONDAY, time(19, 10), 2, Rejection.INVALID_SLOT),
        (MONDAY, time(19, 0), 9, Rejection.FULLY_BOOKED),
    ])
    def test_rejections(self, service, add_tables, contact, day, start, party_size, rejection):
        add_tables(2, 4, 8)

        result = service.create_reservation(day, start, party_size, contact)

        assert not result.success
        assert result.rejection == rejection
        assert result.message
        assert service.list_reservations() == []

    def test_invalid_configuration_is_fatal(self, session_factory, clock):
        config = RestaurantConfig(
            calendar=BusinessCalendar.uniform(DayHours(time(18, 0), time(19, 0))),
            policy=ReservationPolicy(),
        )
        with pytest.raises(ConfigurationError):
            ReservationService(session_factory, config, clock=clock)

    def test_rejected_configuration_update_keeps_current(self, service, config):
        bad = RestaurantConfig(calendar=config.calendar, policy=ReservationPolicy(default_reservation_duration=720))

        with pytest.raises(ConfigurationError):
            service.update_configuration(bad)

        assert service.config is config
        assert service.matcher.duration_minutes == 90

    def test_configuration_update_changes_slots(self, service, add_tables, config):
        add_tables(4)
        policy = ReservationPolicy(time_slot_interval=15)
        service.update_configuration(RestaurantConfig(calendar=config.calendar, policy=policy))

        assert time(11, 15) in service.list_available_slots(MONDAY)

    def test_configuration_update_swaps_policy_together(self, service, config):
        previous = service._current
        policy = ReservationPolicy(min_hours_in_advance=4)
        updated = RestaurantConfig(calendar=config.calendar, policy=policy)

        service.update_configuration(updated)

        assert previous.lifecycle.policy is config.policy
        current = service._current
        assert current is not previous
        assert current.config is updated
        assert current.matcher.config is updated
        assert current.lifecycle.policy is policy

    def test_no_confirmed_overlaps(self, auto_service, add_tables, contact, session_factory):
        add_tables(2, 4, 4, 6)
        starts = [time(18, 0), time(18, 30), time(19, 0), time(19, 30), time(20, 0)]
        for i in range(20):
            auto_service.create_reservation(MONDAY, starts[i % len(starts)], 2 + i % 5, contact)

        confirmed = auto_service.list_reservations(MONDAY, ReservationStatus.CONFIRMED)
        assert confirmed
        for a, b in combinations(confirmed, 2):
            if a.table_id != b.table_id:
                continue
            a_start, b_start = time_to_minutes(a.time), time_to_minutes(b.time)
            assert not (a_start < b_start + b.duration_minutes and b_start < a_start + a.duration_minutes)


@pytest.mark.integration
class TestConfirmReservation:
    """Test staff confirmation with the table re-check."""

    def test_confirm_pending(self, service, add_tables, contact, session_factory):
        add_tables(4)
        pending = service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation

        result = service.confirm_reservation(pending.id)

        assert result.success
        assert result.reservation.status == ReservationStatus.CONFIRMED
        assert result.reservation.confirmed_at is not None
        with session_scope(session_factory) as session:
            actions = [e.action for e in audit_entries(session, "reservation", pending.id)]
        assert actions == [AuditAction.RESERVATION_CREATED.value, AuditAction.RESERVATION_CONFIRMED.value]

    def test_confirm_moves_to_next_free_table(self, service, add_tables, contact):
        small, large = add_tables(4, 6)
        first = service.create_reservation(MONDAY, time(19, 0), 4, contact).reservation
        second = service.create_reservation(MONDAY, time(19, 0), 4, contact).reservation
        assert first.table_id == second.table_id == small.id

        assert service.confirm_reservation(first.id).reservation.table_id == small.id
        assert service.confirm_reservation(second.id).reservation.table_id == large.id

    def test_confirm_when_nothing_is_free(self, service, add_tables, contact):
        add_tables(4)
        first = service.create_reservation(MONDAY, time(19, 0), 4, contact).reservation
        second = service.create_reservation(MONDAY, time(19, 30), 4, contact).reservation
        service.confirm_reservation(first.id)

        result = service.confirm_reservation(second.id)

        assert result.rejection == Rejection.SLOT_TAKEN
        assert service.get_reservation(second.id).status == ReservationStatus.PENDING

    def test_confirm_twice(self, service, add_tables, contact):
        add_tables(4)
        pending = service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        service.confirm_reservation(pending.id)

        result = service.confirm_reservation(pending.id)

        assert result.rejection == Rejection.INVALID_TRANSITION
        assert result.reservation.status == ReservationStatus.CONFIRMED

    def test_confirm_unknown(self, service):
        with pytest.raises(ReservationNotFoundError, match="Reservation 999 not found"):
            service.confirm_reservation(999)


@pytest.mark.integration
class TestCancelReservation:
    """Test cancellation and rejection."""

    def test_cancel_frees_the_slot(self, auto_service, add_tables, contact):
        add_tables(4)
        reservation = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        assert time(19, 0) not in auto_service.list_available_slots(MONDAY)

        result = auto_service.cancel_reservation(reservation.id, reason="Plans changed")

        assert result.success
        assert result.reservation.status == ReservationStatus.CANCELLED
        assert result.reservation.cancelled_reason == "Plans changed"
        assert result.reservation.cancelled_at is not None
        assert time(19, 0) in auto_service.list_available_slots(MONDAY)

    def test_cancel_too_late(self, auto_service, add_tables, contact, clock, config):
        """Confirmed for 19:00, cancelled at 18:00 with two hours' notice required."""
        add_tables(4)
        reservation = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        clock.set(MONDAY, time(18, 0), config.tz)

        result = auto_service.cancel_reservation(reservation.id)

        assert result.rejection == Rejection.CANCELLATION_WINDOW_PASSED
        assert auto_service.get_reservation(reservation.id).status == ReservationStatus.CONFIRMED

    def test_staff_cancel_also_needs_notice(self, auto_service, add_tables, contact, clock, config):
        add_tables(4)
        reservation = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        clock.set(MONDAY, time(17, 30), config.tz)

        result = auto_service.cancel_reservation(reservation.id, actor=Actor.STAFF)

        assert result.rejection == Rejection.CANCELLATION_WINDOW_PASSED

    def test_cancel_pending_any_time(self, service, add_tables, contact, clock, config):
        add_tables(4)
        reservation = service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        clock.set(MONDAY, time(18, 45), config.tz)

        assert service.cancel_reservation(reservation.id).success

    def test_cancel_twice(self, auto_service, add_tables, contact):
        add_tables(4)
        reservation = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        auto_service.cancel_reservation(reservation.id)

        result = auto_service.cancel_reservation(reservation.id)

        assert result.rejection == Rejection.INVALID_TRANSITION

    def test_reject_pending(self, service, add_tables, contact, session_factory):
        add_tables(4)
        reservation = service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation

        result = service.reject_reservation(reservation.id, "Private event")

        assert result.reservation.status == ReservationStatus.CANCELLED
        assert result.reservation.cancelled_reason == "Private event"
        with session_scope(session_factory) as session:
            entry = audit_entries(session, "reservation", reservation.id)[-1]
        assert entry.action == AuditAction.RESERVATION_CANCELLED.value
        assert entry.actor == "staff"
        assert entry.details["reason"] == "Private event"

    def test_reject_confirmed(self, auto_service, add_tables, contact):
        add_tables(4)
        reservation = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation

        result = auto_service.reject_reservation(reservation.id, "Too late")

        assert result.rejection == Rejection.INVALID_TRANSITION

    def test_reject_after_concurrent_confirm(self, service, add_tables, contact, monkeypatch):
        """Staff confirm the booking just before the rejection takes the lock."""
        add_tables(4)
        reservation = service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        original_locked = service._locked

        @contextmanager
        def confirmed_first(reservation_id):
            assert service.confirm_reservation(reservation_id).success
            with original_locked(reservation_id) as held:
                yield held

        monkeypatch.setattr(service, "_locked", confirmed_first)

        result = service.reject_reservation(reservation.id, "Private event")

        assert result.rejection == Rejection.INVALID_TRANSITION
        assert service.get_reservation(reservation.id).status == ReservationStatus.CONFIRMED

    def test_cancel_unknown(self, service):
        with pytest.raises(ReservationNotFoundError):
            service.cancel_reservation(12345)


@pytest.mark.integration
class TestCompleteReservation:
    """Test completion by staff and by the scheduled job."""

    def test_staff_complete(self, auto_service, add_tables, contact):
        add_tables(4)
        reservation = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation

        result = auto_service.complete_reservation(reservation.id)

        assert result.reservation.status == ReservationStatus.COMPLETED
        assert result.reservation.completed_at is not None

    def test_complete_pending(self, service, add_tables, contact):
        add_tables(4)
        reservation = service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation
        assert service.complete_reservation(reservation.id).rejection == Rejection.INVALID_TRANSITION

    def test_complete_finished(self, auto_service, add_tables, contact, clock, config):
        add_tables(4, 4)
        today = clock.now.date()
        lunch = auto_service.create_reservation(today, time(11, 0), 2, contact).reservation
        dinner = auto_service.create_reservation(today, time(19, 0), 2, contact).reservation
        clock.set(today, time(12, 31), config.tz)

        completed = auto_service.complete_finished_reservations()

        assert [r.id for r in completed] == [lunch.id]
        assert auto_service.get_reservation(lunch.id).status == ReservationStatus.COMPLETED
        assert auto_service.get_reservation(dinner.id).status == ReservationStatus.CONFIRMED
        assert auto_service.complete_finished_reservations() == []


@pytest.mark.integration
class TestQueries:
    """Test reservation listings."""

    def test_get_reservation(self, auto_service, add_tables, contact):
        add_tables(4)
        created = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact).reservation

        view = auto_service.get_reservation(created.id)

        assert view.id == created.id
        assert view.can_be_cancelled

    def test_get_unknown(self, service):
        with pytest.raises(ReservationNotFoundError):
            service.get_reservation(999)

    def test_list_by_day_and_status(self, service, add_tables, contact):
        add_tables(4, 4)
        late = service.create_reservation(MONDAY, time(20, 0), 2, contact).reservation
        early = service.create_reservation(MONDAY, time(12, 0), 2, contact).reservation
        service.create_reservation(MONDAY + timedelta(days=1), time(12, 0), 2, contact)
        service.confirm_reservation(late.id)

        assert [r.id for r in service.list_reservations(MONDAY)] == [early.id, late.id]
        assert [r.id for r in service.list_reservations(MONDAY, ReservationStatus.CONFIRMED)] == [late.id]
        assert len(service.list_reservations()) == 3

    def test_user_reservations(self, auto_service, add_tables, contact, clock, config):
        add_tables(4, 4)
        soon = auto_service.create_reservation(MONDAY, time(19, 0), 2, contact, user_id=5).reservation
        later = auto_service.create_reservation(MONDAY + timedelta(days=2), time(19, 0), 2, contact, user_id=5).reservation
        auto_service.create_reservation(MONDAY, time(19, 0), 2, contact, user_id=6)
        auto_service.cancel_reservation(later.id)

        assert [r.id for r in auto_service.list_user_reservations(5)] == [soon.id, later.id]
        assert [r.id for r in auto_service.list_user_reservations(5, upcoming=True)] == [soon.id]
        assert [r.id for r in auto_service.list_user_reservations(5, upcoming=False)] == [later.id]

        clock.set(MONDAY, time(18, 0), config.tz)
        (view,) = auto_service.list_user_reservations(5, upcoming=True)
        assert not view.can_be_cancelled
