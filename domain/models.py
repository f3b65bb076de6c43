"""Domain models using Pydantic v2 for the reservation booking engine."""

import re
from datetime import date, time, datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import ReservationStatus, DayStatus


PHONE_SEPARATORS = re.compile(r"[\s\-\.\(\)]")


class ContactInfo(BaseModel):
    """Guest contact details attached to a reservation."""

    name: str = Field(..., min_length=1, max_length=100, description="Guest name")
    email: str = Field(
        ...,
        max_length=100,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Guest email",
    )
    phone: str = Field(..., pattern=r"^\+?[0-9]{6,15}$", description="Phone number, digits only after normalization")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        from_attributes=True,
    )

    @field_validator("phone", mode="before")
    @classmethod
    def strip_phone_separators(cls, v: Any) -> Any:
        """Drop spaces, dashes, dots and parentheses before pattern matching."""
        if isinstance(v, str):
            return PHONE_SEPARATORS.sub("", v)
        return v


class ReservationRequest(BaseModel):
    """Incoming booking request."""

    date: date
    time: time
    party_size: int = Field(..., ge=1, description="Number of guests")
    contact: ContactInfo
    special_requests: Optional[str] = Field(None, max_length=500)
    user_id: Optional[int] = None
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=64)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReservationRecord(BaseModel):
    """Complete reservation record from database."""

    id: int
    table_id: Optional[int] = None
    date: date
    time: time
    duration_minutes: int
    party_size: int
    status: ReservationStatus
    name: str
    email: str
    phone: str
    special_requests: Optional[str] = None
    user_id: Optional[int] = None
    idempotency_key: Optional[str] = None
    cancelled_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReservationView(ReservationRecord):
    """Reservation as shown to the guest, with cancellation eligibility."""

    can_be_cancelled: bool = False


class TableCreate(BaseModel):
    """Model for adding a physical table."""

    table_number: str = Field(..., min_length=1, max_length=10)
    capacity: int = Field(..., gt=0)
    location: Optional[str] = Field(None, max_length=50)

    model_config = ConfigDict(str_strip_whitespace=True)


class TableRecord(BaseModel):
    """Physical table from the inventory."""

    id: int
    table_number: str
    capacity: int
    location: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class SlotListResponse(BaseModel):
    """Bookable start times for a date."""

    date: date
    slots: List[str]


class DayStatusResponse(BaseModel):
    """Why a date does or does not have slots."""

    date: date
    status: DayStatus
    hours: Dict[str, Any]


class CancelRequest(BaseModel):
    """Request to cancel a reservation."""

    reason: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReservationResponse(BaseModel):
    """Successful booking or lifecycle response."""

    success: bool = True
    reservation: ReservationRecord
    replayed: bool = False


class ErrorResponse(BaseModel):
    """Rejected request."""

    success: bool = False
    error: str
    message: str
