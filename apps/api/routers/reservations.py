"""Customer-facing reservation endpoints."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from apps.api.deps import get_service, result_response
from core.utils_datetime import format_hhmm
from domain.enums import Actor
from domain.models import (
    CancelRequest,
    DayStatusResponse,
    ReservationRequest,
    ReservationView,
    SlotListResponse,
)
from services.reservation_service import ReservationService


router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.get("/slots", response_model=SlotListResponse)
def list_slots(
    day: date = Query(..., alias="date", description="Reservation date"),
    party_size: Optional[int] = Query(None, ge=1, description="Only slots with a table for this party"),
    service: ReservationService = Depends(get_service),
):
    """
    List bookable start times for a date.

    An empty list means closed, outside the booking window or fully booked;
    see /day-status.
    """
    slots = service.list_available_slots(day, party_size)
    return SlotListResponse(date=day, slots=[format_hhmm(slot) for slot in slots])


@router.get("/day-status", response_model=DayStatusResponse)
def get_day_status(
    day: date = Query(..., alias="date", description="Reservation date"),
    party_size: Optional[int] = Query(None, ge=1),
    service: ReservationService = Depends(get_service),
):
    """Explain whether a date offers slots."""
    return DayStatusResponse(
        date=day,
        status=service.day_status(day, party_size),
        hours=service.hours_for(day).to_dict(),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_reservation(
    request: ReservationRequest,
    service: ReservationService = Depends(get_service),
):
    """
    Create a reservation.

    Returns 201 with the new reservation, 200 when the idempotency key was
    already used, or a rejection.
    """
    result = service.create_reservation(
        request.date,
        request.time,
        request.party_size,
        request.contact,
        idempotency_key=request.idempotency_key,
        user_id=request.user_id,
        special_requests=request.special_requests,
    )
    return result_response(result, success_status=status.HTTP_201_CREATED)


@router.get("/user/{user_id}", response_model=List[ReservationView])
def list_user_reservations(
    user_id: int,
    upcoming: Optional[bool] = Query(None, description="True for upcoming, False for past"),
    service: ReservationService = Depends(get_service),
):
    """List a user's reservations with cancellation eligibility."""
    return service.list_user_reservations(user_id, upcoming)


@router.get("/{reservation_id}", response_model=ReservationView)
def get_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_service),
):
    """Get a specific reservation by ID."""
    return service.get_reservation(reservation_id)


@router.post("/{reservation_id}/cancel")
def cancel_reservation(
    reservation_id: int,
    request: Optional[CancelRequest] = Body(None),
    service: ReservationService = Depends(get_service),
):
    """Cancel a reservation on behalf of the guest."""
    reason = request.reason if request else None
    return result_response(service.cancel_reservation(reservation_id, Actor.CUSTOMER, reason))
