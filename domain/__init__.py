"""Domain layer for the reservation booking engine."""

from .enums import (
    ReservationStatus,
    LifecycleEvent,
    Actor,
    Rejection,
    DayStatus,
    AuditAction,
    DayOfWeek,
)
from .models import (
    ContactInfo,
    ReservationRequest,
    ReservationRecord,
    ReservationView,
    TableCreate,
    TableRecord,
    SlotListResponse,
    DayStatusResponse,
    CancelRequest,
    ReservationResponse,
    ErrorResponse,
)
from .results import ReservationResult, AvailabilityMatch

__all__ = [
    # Enums
    "ReservationStatus",
    "LifecycleEvent",
    "Actor",
    "Rejection",
    "DayStatus",
    "AuditAction",
    "DayOfWeek",
    # Models
    "ContactInfo",
    "ReservationRequest",
    "ReservationRecord",
    "ReservationView",
    "TableCreate",
    "TableRecord",
    "SlotListResponse",
    "DayStatusResponse",
    "CancelRequest",
    "ReservationResponse",
    "ErrorResponse",
    # Results
    "ReservationResult",
    "AvailabilityMatch",
]
