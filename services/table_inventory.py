"""
Table inventory: the physical tables and the confirmed reservations that
occupy them.

Occupancy is read straight from confirmed reservation rows on every check,
so a cancellation frees its window as soon as it commits.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from core.utils_datetime import time_to_minutes
from db.models_sqlalchemy import DiningTable, Reservation
from db.session import session_scope
from domain.enums import Actor, AuditAction, ReservationStatus
from domain.models import TableRecord
from services.audit import record_audit


logger = logging.getLogger(__name__)


class TableNotFoundError(Exception):
    """Raised when a table is not found."""
    pass


class DuplicateTableError(Exception):
    """Raised when a table number is already in use."""
    pass


@dataclass(frozen=True)
class OccupancyWindow:
    """Half-open interval [start, end) in minutes since midnight."""
    reservation_id: int
    start: int
    end: int

    def overlaps(self, start: int, end: int) -> bool:
        return windows_overlap(self.start, self.end, start, end)


def windows_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap: back-to-back windows do not conflict."""
    return start_a < end_b and start_b < end_a


class TableInventory:
    """Physical tables and their confirmed bookings."""

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize the inventory.

        Args:
            session_factory: Factory for sessions used by admin operations
        """
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def add_table(
        self,
        table_number: str,
        capacity: int,
        location: Optional[str] = None,
        actor: Actor = Actor.STAFF,
    ) -> TableRecord:
        """
        Add a physical table.

        Raises:
            ValueError: If capacity is not positive
            DuplicateTableError: If the table number is taken
        """
        if capacity <= 0:
            raise ValueError("Table capacity must be positive")

        try:
            with session_scope(self.session_factory) as session:
                table = DiningTable(
                    table_number=table_number,
                    capacity=capacity,
                    location=location,
                    is_active=True,
                )
                session.add(table)
                session.flush()
                record_audit(
                    session,
                    AuditAction.TABLE_ADDED,
                    "table",
                    table.id,
                    actor,
                    {"table_number": table_number, "capacity": capacity, "location": location},
                )
                record = TableRecord.model_validate(table)
        except IntegrityError as e:
            raise DuplicateTableError(f"Table number {table_number} already exists") from e

        logger.info(f"Added table {table_number} (capacity {capacity})")
        return record

    def remove_table(self, table_id: int, actor: Actor = Actor.STAFF) -> TableRecord:
        """
        Take a table out of service. Its reservation history is kept.

        Raises:
            TableNotFoundError: If table not found
        """
        with session_scope(self.session_factory) as session:
            table = self._get(session, table_id)
            table.is_active = False
            record_audit(session, AuditAction.TABLE_REMOVED, "table", table.id, actor)
            record = TableRecord.model_validate(table)

        logger.info(f"Removed table {record.table_number} from service")
        return record

    def get_table(self, table_id: int) -> TableRecord:
        """
        Get a table by ID.

        Raises:
            TableNotFoundError: If table not found
        """
        with session_scope(self.session_factory) as session:
            return TableRecord.model_validate(self._get(session, table_id))

    def list_tables(self, include_inactive: bool = False) -> List[TableRecord]:
        """List tables ordered by capacity, then ID."""
        with session_scope(self.session_factory) as session:
            query = select(DiningTable)
            if not include_inactive:
                query = query.where(DiningTable.is_active.is_(True))
            query = query.order_by(DiningTable.capacity, DiningTable.id)
            return [TableRecord.model_validate(t) for t in session.scalars(query)]

    # ------------------------------------------------------------------
    # Queries inside a caller's transaction
    # ------------------------------------------------------------------

    @staticmethod
    def _get(session: Session, table_id: int) -> DiningTable:
        table = session.get(DiningTable, table_id)
        if table is None:
            raise TableNotFoundError(f"Table {table_id} not found")
        return table

    @staticmethod
    def candidate_tables(session: Session, party_size: int) -> List[DiningTable]:
        """Active tables that seat the party, best fit first (capacity, then ID)."""
        return list(
            session.scalars(
                select(DiningTable)
                .where(
                    DiningTable.is_active.is_(True),
                    DiningTable.capacity >= party_size,
                )
                .order_by(DiningTable.capacity, DiningTable.id)
            )
        )

    @staticmethod
    def lock_table(session: Session, table_id: int) -> DiningTable:
        """
        Load a table row with a row lock held until the transaction ends.

        Backends without SELECT ... FOR UPDATE (SQLite) ignore the lock
        clause; callers serialize through LedgerLocks as well.

        Raises:
            TableNotFoundError: If table not found
        """
        table = session.scalars(
            select(DiningTable).where(DiningTable.id == table_id).with_for_update()
        ).first()
        if table is None:
            raise TableNotFoundError(f"Table {table_id} not found")
        return table

    @staticmethod
    def confirmed_windows(
        session: Session,
        table_id: int,
        day: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> List[OccupancyWindow]:
        """Occupancy windows of confirmed reservations on a table for a date."""
        query = select(Reservation).where(
            Reservation.table_id == table_id,
            Reservation.date == day,
            Reservation.status == ReservationStatus.CONFIRMED,
        )
        if exclude_reservation_id is not None:
            query = query.where(Reservation.id != exclude_reservation_id)

        windows = []
        for reservation in session.scalars(query):
            start = time_to_minutes(reservation.time)
            windows.append(OccupancyWindow(
                reservation_id=reservation.id,
                start=start,
                end=start + reservation.duration_minutes,
            ))
        return windows

    @staticmethod
    def occupancy_by_table(
        session: Session,
        day: date,
        table_ids: List[int],
    ) -> Dict[int, List[OccupancyWindow]]:
        """Confirmed occupancy for several tables on a date, read in one query."""
        occupancy: Dict[int, List[OccupancyWindow]] = {table_id: [] for table_id in table_ids}
        if not table_ids:
            return occupancy

        query = select(Reservation).where(
            Reservation.table_id.in_(table_ids),
            Reservation.date == day,
            Reservation.status == ReservationStatus.CONFIRMED,
        )
        for reservation in session.scalars(query):
            start = time_to_minutes(reservation.time)
            occupancy[reservation.table_id].append(OccupancyWindow(
                reservation_id=reservation.id,
                start=start,
                end=start + reservation.duration_minutes,
            ))
        return occupancy

    def is_free(
        self,
        session: Session,
        table_id: int,
        day: date,
        start: int,
        end: int,
        exclude_reservation_id: Optional[int] = None,
    ) -> bool:
        """Whether no confirmed reservation on the table overlaps [start, end)."""
        return not any(
            window.overlaps(start, end)
            for window in self.confirmed_windows(session, table_id, day, exclude_reservation_id)
        )
