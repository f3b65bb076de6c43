"""
Slot generation from business hours and reservation policy.

Slots are recomputed on every call; nothing here depends on bookings or on
the current time.
"""
from dataclasses import dataclass
from datetime import date, time
from typing import Iterator, List, Optional

from core.restaurant_config import BusinessCalendar, ReservationPolicy, DayHours
from core.utils_datetime import time_to_minutes, minutes_to_time


@dataclass(frozen=True)
class DaySlots:
    """
    Bookable start times for one date.

    Iterating yields times from `first_minute` to `last_minute` inclusive,
    `interval` minutes apart. Empty when the day is closed or the
    reservation duration does not fit between opening and closing.
    """
    day: date
    hours: DayHours
    interval: int
    duration: int

    @property
    def closed(self) -> bool:
        """The restaurant does not open on this date."""
        return self.hours.closed

    @property
    def first_minute(self) -> int:
        return self.hours.open_minutes

    @property
    def last_minute(self) -> Optional[int]:
        """Latest start whose reservation still ends by closing, or None."""
        if self.closed:
            return None
        last_start = self.hours.close_minutes - self.duration
        if last_start < self.first_minute:
            return None
        return last_start

    def __iter__(self) -> Iterator[time]:
        last = self.last_minute
        if last is None:
            return
        for minute in range(self.first_minute, last + 1, self.interval):
            yield minutes_to_time(minute)

    def __len__(self) -> int:
        last = self.last_minute
        if last is None:
            return 0
        return (last - self.first_minute) // self.interval + 1

    def __bool__(self) -> bool:
        return len(self) > 0

    def __contains__(self, candidate: object) -> bool:
        if not isinstance(candidate, time):
            return False
        if candidate.second or candidate.microsecond:
            return False
        last = self.last_minute
        if last is None:
            return False
        minute = time_to_minutes(candidate)
        if minute < self.first_minute or minute > last:
            return False
        return (minute - self.first_minute) % self.interval == 0

    def as_list(self) -> List[time]:
        return list(self)


class SlotGenerator:
    """Produces the valid reservation start times for a date."""

    def __init__(self, calendar: BusinessCalendar, policy: ReservationPolicy):
        self.calendar = calendar
        self.policy = policy

    def slots_for(self, day: date) -> DaySlots:
        """
        Start times for `day`.

        Args:
            day: Date to generate slots for

        Returns:
            DaySlots sequence (empty for closed days)
        """
        return DaySlots(
            day=day,
            hours=self.calendar.hours_for(day),
            interval=self.policy.time_slot_interval,
            duration=self.policy.default_reservation_duration,
        )

    def is_slot(self, day: date, start: time) -> bool:
        """Whether `start` is one of the generated slots for `day`."""
        return start in self.slots_for(day)
