"""Domain enums for the reservation booking engine."""

from enum import Enum, IntEnum


class ReservationStatus(str, Enum):
    """Reservation status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        """Cancelled and completed reservations accept no further events."""
        return self in (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED)


class LifecycleEvent(str, Enum):
    """Events that drive reservation status transitions."""

    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"


class Actor(str, Enum):
    """Who triggered an action on a reservation."""

    CUSTOMER = "customer"
    STAFF = "staff"
    SYSTEM = "system"


class Rejection(str, Enum):
    """Typed outcomes for requests the engine declines."""

    OUT_OF_WINDOW = "out_of_window"
    INVALID_SLOT = "invalid_slot"
    FULLY_BOOKED = "fully_booked"
    SLOT_TAKEN = "slot_taken"
    INVALID_TRANSITION = "invalid_transition"
    CANCELLATION_WINDOW_PASSED = "cancellation_window_passed"


class DayStatus(str, Enum):
    """Why a day does or does not offer slots."""

    AVAILABLE = "available"
    CLOSED = "closed"
    OUT_OF_WINDOW = "out_of_window"
    FULLY_BOOKED = "fully_booked"


class AuditAction(str, Enum):
    """Audit log action types."""

    RESERVATION_CREATED = "reservation_created"
    RESERVATION_CONFIRMED = "reservation_confirmed"
    RESERVATION_CANCELLED = "reservation_cancelled"
    RESERVATION_COMPLETED = "reservation_completed"
    TABLE_ADDED = "table_added"
    TABLE_REMOVED = "table_removed"


class DayOfWeek(IntEnum):
    """Days of the week, numbered like date.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def from_name(cls, name: str) -> "DayOfWeek":
        """Look up a weekday by its English name, case-insensitively."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown weekday '{name}'") from None
