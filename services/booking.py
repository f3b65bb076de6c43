"""
Booking transaction: turns an availability match into a persisted
reservation without double-booking.

Writes that can change a table's occupancy are serialized per
(table, date) through LedgerLocks, and the exclusivity check is repeated
inside the same database transaction that writes the row, under a row lock
on the table. Bookings for other tables or other dates proceed concurrently.
"""
import logging
import threading
import weakref
from contextlib import ExitStack, contextmanager
from datetime import date, datetime
from typing import Callable, Iterable, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from core.utils_datetime import get_current_datetime, time_to_minutes
from db.models_sqlalchemy import Reservation
from db.session import session_scope
from domain.enums import Actor, AuditAction, Rejection, ReservationStatus
from domain.models import ContactInfo, ReservationRecord
from domain.results import AvailabilityMatch, ReservationResult
from services.audit import record_audit
from services.table_inventory import TableInventory


logger = logging.getLogger(__name__)


class LedgerLocks:
    """
    Process-wide locks, one per (table, date) occupancy ledger.

    An entry lives only while some thread holds or waits on its lock.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock_for(self, table_id: int, day: date) -> threading.Lock:
        key = (table_id, day)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, table_id: Optional[int], day: date) -> Iterator[None]:
        """Hold the ledger lock for a table/date; no-op for unassigned reservations."""
        if table_id is None:
            yield
            return
        with self.lock_for(table_id, day):
            yield

    @contextmanager
    def hold_many(self, table_ids: Iterable[Optional[int]], day: date) -> Iterator[None]:
        """Hold several ledger locks for one date, acquired in table ID order."""
        with ExitStack() as stack:
            for table_id in sorted({t for t in table_ids if t is not None}):
                stack.enter_context(self.lock_for(table_id, day))
            yield


def find_by_idempotency_key(session: Session, key: str) -> Optional[Reservation]:
    return session.scalars(
        select(Reservation).where(Reservation.idempotency_key == key)
    ).first()


class BookingTransaction:
    """Atomic commit of a matched reservation."""

    def __init__(
        self,
        session_factory: sessionmaker,
        inventory: TableInventory,
        locks: LedgerLocks,
        clock: Callable[[], datetime] = get_current_datetime,
    ):
        self.session_factory = session_factory
        self.inventory = inventory
        self.locks = locks
        self.clock = clock

    def commit(
        self,
        match: AvailabilityMatch,
        contact: ContactInfo,
        status: ReservationStatus,
        idempotency_key: Optional[str] = None,
        user_id: Optional[int] = None,
        special_requests: Optional[str] = None,
        actor: Actor = Actor.CUSTOMER,
    ) -> ReservationResult:
        """
        Persist a reservation for a successful match.

        Args:
            match: Available match from AvailabilityMatcher
            contact: Guest contact details
            status: Initial status (pending or confirmed)
            idempotency_key: Client request ID; repeats return the original reservation
            user_id: Authenticated user, if any
            special_requests: Free-text guest notes
            actor: Who is booking

        Returns:
            ReservationResult with the reservation, or SLOT_TAKEN when a
            concurrent booking claimed the table first

        Raises:
            ValueError: If the match has no table or the status is not initial
        """
        if not match.available:
            raise ValueError("Cannot commit a match without a table")
        if status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise ValueError(f"Reservations cannot start as {status.value}")

        table_id = match.table.id
        begin = time_to_minutes(match.time)
        end = begin + match.duration_minutes

        try:
            with self.locks.hold(table_id, match.date):
                with session_scope(self.session_factory) as session:
                    if idempotency_key:
                        existing = find_by_idempotency_key(session, idempotency_key)
                        if existing is not None:
                            return ReservationResult.ok(
                                ReservationRecord.model_validate(existing), replayed=True
                            )

                    table = self.inventory.lock_table(session, table_id)
                    if not table.is_active:
                        return self._slot_taken(match, "was taken out of service")

                    # Pending reservations do not occupy the table.
                    if status == ReservationStatus.CONFIRMED and not self.inventory.is_free(
                        session, table_id, match.date, begin, end
                    ):
                        return self._slot_taken(match, "was just booked by another guest")

                    reservation = Reservation(
                        table_id=table_id,
                        date=match.date,
                        time=match.time,
                        duration_minutes=match.duration_minutes,
                        party_size=match.party_size,
                        status=status,
                        name=contact.name,
                        email=contact.email,
                        phone=contact.phone,
                        special_requests=special_requests,
                        user_id=user_id,
                        idempotency_key=idempotency_key,
                        confirmed_at=self.clock() if status == ReservationStatus.CONFIRMED else None,
                    )
                    session.add(reservation)
                    session.flush()

                    record_audit(
                        session,
                        AuditAction.RESERVATION_CREATED,
                        "reservation",
                        reservation.id,
                        actor,
                        {
                            "table_id": table_id,
                            "date": match.date.isoformat(),
                            "time": match.time.strftime('%H:%M'),
                            "party_size": match.party_size,
                            "status": status.value,
                        },
                    )
                    record = ReservationRecord.model_validate(reservation)
        except IntegrityError:
            # Another request with the same idempotency key won the insert.
            if not idempotency_key:
                raise
            with session_scope(self.session_factory) as session:
                existing = find_by_idempotency_key(session, idempotency_key)
                if existing is None:
                    raise
                logger.info(f"Idempotency key {idempotency_key} replayed after concurrent insert")
                return ReservationResult.ok(ReservationRecord.model_validate(existing), replayed=True)

        logger.info(
            f"Created reservation {record.id} on table {table_id}",
            extra={
                "reservation_id": record.id,
                "table_id": table_id,
                "date": match.date.isoformat(),
                "time": match.time.strftime('%H:%M'),
                "status": status.value,
            },
        )
        return ReservationResult.ok(record)

    @staticmethod
    def _slot_taken(match: AvailabilityMatch, reason: str) -> ReservationResult:
        logger.warning(
            f"Table {match.table.table_number} {reason}",
            extra={"table_id": match.table.id, "date": match.date.isoformat()},
        )
        return ReservationResult.rejected(
            Rejection.SLOT_TAKEN,
            f"Table {match.table.table_number} {reason} for {match.time.strftime('%H:%M')} "
            f"on {match.date.isoformat()}; please choose another time",
        )
