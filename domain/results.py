"""Typed outcomes returned by the booking engine instead of raising."""

from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from .enums import Rejection
from .models import ReservationRecord, TableRecord


@dataclass
class ReservationResult:
    """Outcome of a booking or lifecycle request."""
    success: bool
    reservation: Optional[ReservationRecord] = None
    rejection: Optional[Rejection] = None
    message: Optional[str] = None
    replayed: bool = False  # idempotent repeat of an earlier successful request

    @classmethod
    def ok(cls, reservation: ReservationRecord, replayed: bool = False) -> "ReservationResult":
        return cls(success=True, reservation=reservation, replayed=replayed)

    @classmethod
    def rejected(
        cls,
        rejection: Rejection,
        message: str,
        reservation: Optional[ReservationRecord] = None,
    ) -> "ReservationResult":
        return cls(success=False, rejection=rejection, message=message, reservation=reservation)


@dataclass(frozen=True)
class AvailabilityMatch:
    """Result of matching a request to a table."""
    date: date
    time: time
    party_size: int
    duration_minutes: int
    table: Optional[TableRecord] = None
    rejection: Optional[Rejection] = None
    message: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.table is not None
