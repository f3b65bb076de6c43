"""
Reservation Service for managing restaurant reservations.
Ties slot generation, table matching, the booking transaction and the
lifecycle state machine together behind one facade.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterator, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from core.restaurant_config import (
    DayHours,
    RestaurantConfig,
    get_default_restaurant_config,
    load_restaurant_config,
)
from core.settings import settings
from core.utils_datetime import get_current_datetime, localize, time_to_minutes
from db.models_sqlalchemy import Reservation
from db.session import SessionLocal, session_scope
from domain.enums import Actor, AuditAction, DayStatus, Rejection, ReservationStatus
from domain.models import ContactInfo, ReservationRecord, ReservationView
from domain.results import AvailabilityMatch, ReservationResult
from services.audit import record_audit
from services.availability import AvailabilityMatcher
from services.booking import BookingTransaction, LedgerLocks, find_by_idempotency_key
from services.lifecycle import LifecycleError, ReservationLifecycle
from services.table_inventory import TableInventory


logger = logging.getLogger(__name__)


class ReservationNotFoundError(Exception):
    """Raised when reservation is not found."""
    pass


@dataclass(frozen=True)
class ServiceConfiguration:
    """Configuration with the matcher and lifecycle built from it, swapped as one."""
    config: RestaurantConfig
    matcher: AvailabilityMatcher
    lifecycle: ReservationLifecycle


class ReservationService:
    """Service for managing restaurant reservations."""

    def __init__(
        self,
        session_factory: sessionmaker,
        config: RestaurantConfig,
        auto_confirm: bool = False,
        clock: Callable[[], datetime] = get_current_datetime,
        locks: Optional[LedgerLocks] = None,
    ):
        """
        Initialize ReservationService.

        Args:
            session_factory: Factory for database sessions
            config: Restaurant calendar and reservation policy
            auto_confirm: Create reservations as confirmed instead of pending
            clock: Returns the current aware datetime
            locks: Ledger locks shared with other services in this process

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.session_factory = session_factory
        self.auto_confirm = auto_confirm
        self.clock = clock
        self.locks = locks or LedgerLocks()
        self.inventory = TableInventory(session_factory)
        self.booking = BookingTransaction(session_factory, self.inventory, self.locks, clock)
        self._apply_configuration(config.validate())

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _apply_configuration(self, config: RestaurantConfig) -> None:
        self._current = ServiceConfiguration(
            config=config,
            matcher=AvailabilityMatcher(self.inventory, config, self.clock),
            lifecycle=ReservationLifecycle(config.policy),
        )

    @property
    def config(self) -> RestaurantConfig:
        return self._current.config

    @property
    def matcher(self) -> AvailabilityMatcher:
        return self._current.matcher

    @property
    def lifecycle(self) -> ReservationLifecycle:
        return self._current.lifecycle

    def update_configuration(self, config: RestaurantConfig) -> None:
        """
        Replace the calendar and policy.

        Existing reservations keep the duration they were created with.

        Raises:
            ConfigurationError: If the new configuration is invalid; the
                current one stays in effect
        """
        self._apply_configuration(config.validate())
        logger.info("Restaurant configuration updated", extra={"config": config.to_dict()})

    def hours_for(self, day: date) -> DayHours:
        return self.config.calendar.hours_for(day)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def list_available_slots(self, day: date, party_size: Optional[int] = None) -> List[time]:
        """
        Bookable start times for a date.

        An empty list means the day is closed, outside the advance window or
        fully booked; day_status() tells which.
        """
        with session_scope(self.session_factory) as session:
            return self.matcher.available_slots(session, day, party_size or 1)

    def day_status(self, day: date, party_size: Optional[int] = None) -> DayStatus:
        with session_scope(self.session_factory) as session:
            return self.matcher.day_status(session, day, party_size or 1)

    def check_availability(self, day: date, start: time, party_size: int) -> AvailabilityMatch:
        """Match a request to a table without booking it."""
        with session_scope(self.session_factory) as session:
            return self.matcher.match(session, day, start, party_size)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def create_reservation(
        self,
        day: date,
        start: time,
        party_size: int,
        contact: ContactInfo,
        idempotency_key: Optional[str] = None,
        user_id: Optional[int] = None,
        special_requests: Optional[str] = None,
        actor: Actor = Actor.CUSTOMER,
    ) -> ReservationResult:
        """
        Create a new reservation.

        Args:
            day: Reservation date
            start: Start time, one of the generated slots
            party_size: Number of guests
            contact: Guest contact details
            idempotency_key: Client request ID; a repeat returns the original reservation
            user_id: Authenticated user, if any
            special_requests: Free-text guest notes
            actor: Who is booking

        Returns:
            ReservationResult; rejections are OUT_OF_WINDOW, INVALID_SLOT,
            FULLY_BOOKED or SLOT_TAKEN

        Raises:
            ValueError: If party_size is not positive
        """
        if idempotency_key:
            replay = self._replay(idempotency_key)
            if replay is not None:
                return replay

        with session_scope(self.session_factory) as session:
            match = self.matcher.match(session, day, start, party_size)

        if not match.available:
            # The first request with this key may have taken the table while
            # this one was matching.
            if idempotency_key:
                replay = self._replay(idempotency_key)
                if replay is not None:
                    return replay

            logger.info(
                f"Reservation request rejected: {match.rejection.value}",
                extra={
                    "rejection": match.rejection.value,
                    "date": day.isoformat(),
                    "time": start.strftime('%H:%M'),
                    "party_size": party_size,
                },
            )
            return ReservationResult.rejected(match.rejection, match.message)

        status = ReservationStatus.CONFIRMED if self.auto_confirm else ReservationStatus.PENDING
        return self.booking.commit(
            match,
            contact,
            status,
            idempotency_key=idempotency_key,
            user_id=user_id,
            special_requests=special_requests,
            actor=actor,
        )

    def _replay(self, idempotency_key: str) -> Optional[ReservationResult]:
        with session_scope(self.session_factory) as session:
            existing = find_by_idempotency_key(session, idempotency_key)
            if existing is None:
                return None
            record = ReservationRecord.model_validate(existing)

        logger.info(
            f"Replaying reservation {record.id} for idempotency key {idempotency_key}",
            extra={"reservation_id": record.id},
        )
        return ReservationResult.ok(record, replayed=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _load(session: Session, reservation_id: int, for_update: bool = False) -> Reservation:
        reservation = session.get(Reservation, reservation_id, with_for_update=for_update)
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    @contextmanager
    def _locked(self, reservation_id: int) -> Iterator[Tuple[Session, Reservation]]:
        """
        Load a reservation under the ledger lock of its table and date.

        Retries if a concurrent confirmation moved it to another table
        between reading the assignment and taking the lock.
        """
        while True:
            with session_scope(self.session_factory) as session:
                snapshot = self._load(session, reservation_id)
                table_id, day = snapshot.table_id, snapshot.date

            with self.locks.hold(table_id, day):
                with session_scope(self.session_factory) as session:
                    reservation = self._load(session, reservation_id, for_update=True)
                    if reservation.table_id == table_id:
                        yield session, reservation
                        return

    @staticmethod
    def _start(reservation: Reservation, config: RestaurantConfig) -> datetime:
        return localize(reservation.date, reservation.time, config.tz)

    @classmethod
    def _end(cls, reservation: Reservation, config: RestaurantConfig) -> datetime:
        return cls._start(reservation, config) + timedelta(minutes=reservation.duration_minutes)

    @staticmethod
    def _refused(reservation_id: int, error: LifecycleError, record: ReservationRecord) -> ReservationResult:
        logger.info(
            f"Reservation {reservation_id}: {error}",
            extra={"reservation_id": reservation_id, "rejection": error.rejection.value},
        )
        return ReservationResult.rejected(error.rejection, str(error), reservation=record)

    def confirm_reservation(self, reservation_id: int, actor: Actor = Actor.STAFF) -> ReservationResult:
        """
        Confirm a pending reservation.

        The assigned table is re-checked under its ledger lock; if a
        confirmed reservation now overlaps it, the best-fit free alternative
        is assigned instead.

        Returns:
            ReservationResult; rejections are INVALID_TRANSITION or SLOT_TAKEN

        Raises:
            ReservationNotFoundError: If reservation not found
        """
        lifecycle = self.lifecycle
        with session_scope(self.session_factory) as session:
            reservation = self._load(session, reservation_id)
            record = ReservationRecord.model_validate(reservation)
            try:
                lifecycle.confirm(reservation.status)
            except LifecycleError as e:
                return self._refused(reservation_id, e, record)

            candidates = [
                t.id for t in self.inventory.candidate_tables(session, reservation.party_size)
            ]

        # Tentative table first, then best fit.
        if record.table_id in candidates:
            candidates.remove(record.table_id)
            candidates.insert(0, record.table_id)

        begin = time_to_minutes(record.time)
        end = begin + record.duration_minutes

        for table_id in candidates:
            with self.locks.hold_many([record.table_id, table_id], record.date):
                with session_scope(self.session_factory) as session:
                    reservation = self._load(session, reservation_id, for_update=True)
                    # A concurrent confirm or cancel leaves it non-pending.
                    try:
                        target = lifecycle.confirm(reservation.status)
                    except LifecycleError as e:
                        return self._refused(reservation_id, e, ReservationRecord.model_validate(reservation))

                    table = self.inventory.lock_table(session, table_id)
                    if not table.is_active or not self.inventory.is_free(
                        session, table_id, record.date, begin, end, exclude_reservation_id=reservation_id
                    ):
                        continue

                    reservation.table_id = table_id
                    reservation.status = target
                    reservation.confirmed_at = self.clock()
                    record_audit(
                        session,
                        AuditAction.RESERVATION_CONFIRMED,
                        "reservation",
                        reservation_id,
                        actor,
                        {"table_id": table_id, "reassigned": table_id != record.table_id},
                    )
                    session.flush()
                    confirmed = ReservationRecord.model_validate(reservation)

            logger.info(
                f"Confirmed reservation {reservation_id} on table {table_id}",
                extra={
                    "reservation_id": reservation_id,
                    "table_id": table_id,
                    "date": record.date.isoformat(),
                    "time": record.time.strftime('%H:%M'),
                },
            )
            return ReservationResult.ok(confirmed)

        logger.warning(
            f"Reservation {reservation_id} cannot be confirmed: no table is free",
            extra={"reservation_id": reservation_id, "date": record.date.isoformat()},
        )
        return ReservationResult.rejected(
            Rejection.SLOT_TAKEN,
            f"No table for {record.party_size} is free at {record.time.strftime('%H:%M')} "
            f"on {record.date.isoformat()} any more",
            reservation=record,
        )

    def cancel_reservation(
        self,
        reservation_id: int,
        actor: Actor = Actor.CUSTOMER,
        reason: Optional[str] = None,
    ) -> ReservationResult:
        """
        Cancel a reservation.

        Pending reservations can always be cancelled; confirmed ones only up
        to min_hours_in_advance before their start. The table is free again
        as soon as this commits.

        Returns:
            ReservationResult; rejections are INVALID_TRANSITION or
            CANCELLATION_WINDOW_PASSED

        Raises:
            ReservationNotFoundError: If reservation not found
        """
        return self._cancel(reservation_id, actor, reason)

    def reject_reservation(self, reservation_id: int, reason: Optional[str] = None) -> ReservationResult:
        """
        Staff rejection of a pending reservation.

        Raises:
            ReservationNotFoundError: If reservation not found
        """
        return self._cancel(reservation_id, Actor.STAFF, reason, pending_only=True)

    def _cancel(
        self,
        reservation_id: int,
        actor: Actor,
        reason: Optional[str],
        pending_only: bool = False,
    ) -> ReservationResult:
        current = self._current
        with self._locked(reservation_id) as (session, reservation):
            if pending_only and reservation.status != ReservationStatus.PENDING:
                logger.info(
                    f"Reservation {reservation_id} is {reservation.status.value}, not rejected",
                    extra={"reservation_id": reservation_id},
                )
                return ReservationResult.rejected(
                    Rejection.INVALID_TRANSITION,
                    f"Only pending reservations can be rejected, this one is {reservation.status.value}",
                    reservation=ReservationRecord.model_validate(reservation),
                )

            try:
                target = current.lifecycle.cancel(
                    reservation.status, self._start(reservation, current.config), current.matcher.now()
                )
            except LifecycleError as e:
                return self._refused(reservation_id, e, ReservationRecord.model_validate(reservation))

            previous = reservation.status
            reservation.status = target
            reservation.cancelled_at = self.clock()
            reservation.cancelled_reason = reason
            record_audit(
                session,
                AuditAction.RESERVATION_CANCELLED,
                "reservation",
                reservation_id,
                actor,
                {"previous_status": previous.value, "reason": reason},
            )
            session.flush()
            record = ReservationRecord.model_validate(reservation)

        logger.info(
            f"Cancelled reservation {reservation_id}",
            extra={"reservation_id": reservation_id, "table_id": record.table_id, "actor": actor.value},
        )
        return ReservationResult.ok(record)

    def complete_reservation(self, reservation_id: int, actor: Actor = Actor.STAFF) -> ReservationResult:
        """
        Mark a confirmed reservation as completed.

        Raises:
            ReservationNotFoundError: If reservation not found
        """
        current = self._current
        with self._locked(reservation_id) as (session, reservation):
            try:
                target = current.lifecycle.complete(
                    reservation.status,
                    self._end(reservation, current.config),
                    current.matcher.now(),
                    actor,
                )
            except LifecycleError as e:
                return self._refused(reservation_id, e, ReservationRecord.model_validate(reservation))

            reservation.status = target
            reservation.completed_at = self.clock()
            record_audit(session, AuditAction.RESERVATION_COMPLETED, "reservation", reservation_id, actor)
            session.flush()
            record = ReservationRecord.model_validate(reservation)

        logger.info(
            f"Completed reservation {reservation_id}",
            extra={"reservation_id": reservation_id, "actor": actor.value},
        )
        return ReservationResult.ok(record)

    def complete_finished_reservations(self) -> List[ReservationRecord]:
        """
        Complete every confirmed reservation whose end time has passed.

        Meant to be called by an external scheduled job.
        """
        config = self.config
        now = self.matcher.now()
        with session_scope(self.session_factory) as session:
            due = [
                r.id for r in session.scalars(
                    select(Reservation).where(
                        Reservation.status == ReservationStatus.CONFIRMED,
                        Reservation.date <= now.date(),
                    )
                )
                if self._end(r, config) <= now
            ]

        completed = []
        for reservation_id in due:
            result = self.complete_reservation(reservation_id, actor=Actor.SYSTEM)
            if result.success:
                completed.append(result.reservation)

        logger.info(f"Completed {len(completed)} finished reservations")
        return completed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def can_be_cancelled(self, reservation: ReservationRecord, now: Optional[datetime] = None) -> bool:
        """Whether a cancel request would currently succeed."""
        current = self._current
        now = now or current.matcher.now()
        start = localize(reservation.date, reservation.time, current.config.tz)
        return current.lifecycle.can_cancel(reservation.status, start, now)

    def _view(self, reservation: Reservation, now: datetime) -> ReservationView:
        view = ReservationView.model_validate(reservation)
        view.can_be_cancelled = self.can_be_cancelled(view, now)
        return view

    def get_reservation(self, reservation_id: int) -> ReservationView:
        """
        Get reservation by ID.

        Raises:
            ReservationNotFoundError: If reservation not found
        """
        with session_scope(self.session_factory) as session:
            return self._view(self._load(session, reservation_id), self.matcher.now())

    def list_reservations(
        self,
        day: Optional[date] = None,
        status: Optional[ReservationStatus] = None,
    ) -> List[ReservationView]:
        """List reservations ordered by date and time, optionally filtered."""
        query = select(Reservation)
        if day is not None:
            query = query.where(Reservation.date == day)
        if status is not None:
            query = query.where(Reservation.status == status)
        query = query.order_by(Reservation.date, Reservation.time, Reservation.id)

        now = self.matcher.now()
        with session_scope(self.session_factory) as session:
            return [self._view(r, now) for r in session.scalars(query)]

    def list_user_reservations(self, user_id: int, upcoming: Optional[bool] = None) -> List[ReservationView]:
        """
        A user's reservations.

        Args:
            user_id: Owner of the reservations
            upcoming: True for active reservations from today on, False for
                past or finished ones, None for all
        """
        now = self.matcher.now()
        active = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

        query = select(Reservation).where(Reservation.user_id == user_id)
        if upcoming is True:
            query = query.where(Reservation.date >= now.date(), Reservation.status.in_(active))
        elif upcoming is False:
            query = query.where(
                (Reservation.date < now.date()) | Reservation.status.not_in(active)
            )
        query = query.order_by(Reservation.date, Reservation.time, Reservation.id)

        with session_scope(self.session_factory) as session:
            return [self._view(r, now) for r in session.scalars(query)]


# Global service instance
_reservation_service_instance: Optional[ReservationService] = None


def get_reservation_service() -> ReservationService:
    """
    Get or create global ReservationService instance.

    The restaurant configuration is read from settings.restaurant_config_path
    when set, otherwise the defaults are used.

    Returns:
        ReservationService instance

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    global _reservation_service_instance

    if _reservation_service_instance is None:
        if settings.restaurant_config_path:
            config = load_restaurant_config(
                settings.restaurant_config_path,
                name=settings.restaurant_name,
                timezone=settings.restaurant_timezone,
            )
        else:
            config = get_default_restaurant_config(
                name=settings.restaurant_name,
                timezone=settings.restaurant_timezone,
            )
        _reservation_service_instance = ReservationService(
            SessionLocal,
            config,
            auto_confirm=settings.reservation_auto_confirm,
        )

    return _reservation_service_instance
