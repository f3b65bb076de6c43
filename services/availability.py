"""
Availability matching: can a party be seated at a given date and time, and
at which table.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from core.restaurant_config import RestaurantConfig
from core.utils_datetime import get_current_datetime, localize, to_timezone, time_to_minutes
from db.models_sqlalchemy import DiningTable
from domain.enums import DayStatus, Rejection
from domain.models import TableRecord
from domain.results import AvailabilityMatch
from services.slot_generator import SlotGenerator
from services.table_inventory import OccupancyWindow, TableInventory


logger = logging.getLogger(__name__)


def first_free_table(
    tables: List[DiningTable],
    occupancy: Dict[int, List[OccupancyWindow]],
    start: int,
    end: int,
) -> Optional[DiningTable]:
    """First table (in the given best-fit order) with nothing overlapping [start, end)."""
    for table in tables:
        if not any(window.overlaps(start, end) for window in occupancy.get(table.id, [])):
            return table
    return None


class AvailabilityMatcher:
    """Matches (date, time, party size) requests to tables."""

    def __init__(
        self,
        inventory: TableInventory,
        config: RestaurantConfig,
        clock: Callable[[], datetime] = get_current_datetime,
    ):
        """
        Initialize the matcher.

        Args:
            inventory: Table inventory to search
            config: Restaurant calendar and policy
            clock: Returns the current aware datetime
        """
        self.inventory = inventory
        self.config = config
        self.slot_generator = SlotGenerator(config.calendar, config.policy)
        self.clock = clock

    @property
    def duration_minutes(self) -> int:
        return self.config.policy.default_reservation_duration

    def now(self) -> datetime:
        return to_timezone(self.clock(), self.config.tz)

    # ------------------------------------------------------------------
    # Advance window
    # ------------------------------------------------------------------

    def last_bookable_date(self, now: Optional[datetime] = None) -> date:
        now = now or self.now()
        return now.date() + timedelta(days=self.config.policy.max_days_in_advance)

    def earliest_start(self, now: Optional[datetime] = None) -> datetime:
        now = now or self.now()
        return now + timedelta(hours=self.config.policy.min_hours_in_advance)

    def date_in_window(self, day: date, now: Optional[datetime] = None) -> bool:
        """Whether any part of `day` can fall inside the advance window."""
        now = now or self.now()
        return now.date() <= day <= self.last_bookable_date(now)

    def window_violation(self, day: date, start: time, now: Optional[datetime] = None) -> Optional[str]:
        """
        Check the advance window for a requested start.

        Returns:
            Reason the request is outside the window, or None
        """
        now = now or self.now()
        policy = self.config.policy

        if localize(day, start, self.config.tz) < self.earliest_start(now):
            return f"Reservations must be made at least {policy.min_hours_in_advance} hours in advance"

        if day > self.last_bookable_date(now):
            return f"Reservations cannot be made more than {policy.max_days_in_advance} days in advance"

        return None

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match(self, session: Session, day: date, start: time, party_size: int) -> AvailabilityMatch:
        """
        Find the best-fit free table for a request.

        Args:
            session: Session providing a consistent view of the ledger
            day: Requested date
            start: Requested start time
            party_size: Number of guests

        Returns:
            AvailabilityMatch with the chosen table, or a rejection
            (OUT_OF_WINDOW, INVALID_SLOT, FULLY_BOOKED)

        Raises:
            ValueError: If party_size is not positive
        """
        if party_size < 1:
            raise ValueError("Party size must be at least 1")

        duration = self.duration_minutes
        request = dict(date=day, time=start, party_size=party_size, duration_minutes=duration)

        violation = self.window_violation(day, start)
        if violation:
            return AvailabilityMatch(**request, rejection=Rejection.OUT_OF_WINDOW, message=violation)

        if not self.slot_generator.is_slot(day, start):
            return AvailabilityMatch(
                **request,
                rejection=Rejection.INVALID_SLOT,
                message=f"{start.strftime('%H:%M')} is not a bookable time on {day.isoformat()}",
            )

        tables = self.inventory.candidate_tables(session, party_size)
        occupancy = self.inventory.occupancy_by_table(session, day, [t.id for t in tables])
        begin = time_to_minutes(start)
        table = first_free_table(tables, occupancy, begin, begin + duration)

        if table is None:
            return AvailabilityMatch(
                **request,
                rejection=Rejection.FULLY_BOOKED,
                message=f"No table for {party_size} is free at {start.strftime('%H:%M')} on {day.isoformat()}",
            )

        return AvailabilityMatch(**request, table=TableRecord.model_validate(table))

    def available_slots(self, session: Session, day: date, party_size: int = 1) -> List[time]:
        """
        Slots on `day` inside the advance window with at least one free table.

        Returns:
            Ordered start times (empty when closed, out of window or fully booked)
        """
        now = self.now()
        if not self.date_in_window(day, now):
            return []

        slots = self.slot_generator.slots_for(day)
        if not slots:
            return []

        tables = self.inventory.candidate_tables(session, party_size)
        occupancy = self.inventory.occupancy_by_table(session, day, [t.id for t in tables])
        duration = self.duration_minutes

        available = []
        for slot in slots:
            if self.window_violation(day, slot, now):
                continue
            begin = time_to_minutes(slot)
            if first_free_table(tables, occupancy, begin, begin + duration) is not None:
                available.append(slot)
        return available

    def day_status(self, session: Session, day: date, party_size: int = 1) -> DayStatus:
        """Explain an empty slot list: closed, out of window, or fully booked."""
        now = self.now()
        slots = self.slot_generator.slots_for(day)
        if not slots:
            return DayStatus.CLOSED

        if not any(self.window_violation(day, slot, now) is None for slot in slots):
            return DayStatus.OUT_OF_WINDOW

        if not self.available_slots(session, day, party_size):
            return DayStatus.FULLY_BOOKED

        return DayStatus.AVAILABLE
