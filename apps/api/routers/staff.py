"""Staff endpoints for reviewing reservations and managing tables."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from apps.api.deps import get_service, result_response
from domain.enums import Actor, ReservationStatus
from domain.models import (
    CancelRequest,
    ReservationRecord,
    ReservationView,
    TableCreate,
    TableRecord,
)
from services.reservation_service import ReservationService


router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/reservations", response_model=List[ReservationView])
def list_reservations(
    day: Optional[date] = Query(None, alias="date", description="Date to list (today if omitted)"),
    status_filter: Optional[ReservationStatus] = Query(None, alias="status", description="Filter by status"),
    service: ReservationService = Depends(get_service),
):
    """
    List reservations for a day.

    Args:
        day: Reservation date, defaults to today in the restaurant timezone
        status_filter: pending, confirmed, cancelled or completed
        service: Reservation service

    Returns:
        List[ReservationView]: Reservations ordered by time
    """
    day = day or service.matcher.now().date()
    return service.list_reservations(day, status_filter)


@router.post("/reservations/complete-finished", response_model=List[ReservationRecord])
def complete_finished_reservations(service: ReservationService = Depends(get_service)):
    """Complete every confirmed reservation that has ended."""
    return service.complete_finished_reservations()


@router.post("/reservations/{reservation_id}/confirm")
def confirm_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_service),
):
    """Confirm a pending reservation, re-checking that its table is still free."""
    return result_response(service.confirm_reservation(reservation_id, Actor.STAFF))


@router.post("/reservations/{reservation_id}/reject")
def reject_reservation(
    reservation_id: int,
    request: Optional[CancelRequest] = Body(None),
    service: ReservationService = Depends(get_service),
):
    """Reject a pending reservation with an optional reason."""
    reason = request.reason if request else None
    return result_response(service.reject_reservation(reservation_id, reason))


@router.post("/reservations/{reservation_id}/cancel")
def cancel_reservation(
    reservation_id: int,
    request: Optional[CancelRequest] = Body(None),
    service: ReservationService = Depends(get_service),
):
    """Cancel a reservation on behalf of the restaurant."""
    reason = request.reason if request else None
    return result_response(service.cancel_reservation(reservation_id, Actor.STAFF, reason))


@router.post("/reservations/{reservation_id}/complete")
def complete_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_service),
):
    """Mark a confirmed reservation as completed."""
    return result_response(service.complete_reservation(reservation_id, Actor.STAFF))


@router.get("/tables", response_model=List[TableRecord])
def list_tables(
    include_inactive: bool = Query(False, description="Include tables taken out of service"),
    service: ReservationService = Depends(get_service),
):
    """List tables, smallest first."""
    return service.inventory.list_tables(include_inactive)


@router.post("/tables", response_model=TableRecord, status_code=status.HTTP_201_CREATED)
def add_table(
    table: TableCreate,
    service: ReservationService = Depends(get_service),
):
    """Add a physical table."""
    return service.inventory.add_table(table.table_number, table.capacity, table.location, Actor.STAFF)


@router.delete("/tables/{table_id}", response_model=TableRecord)
def remove_table(
    table_id: int,
    service: ReservationService = Depends(get_service),
):
    """Take a table out of service; its reservation history is kept."""
    return service.inventory.remove_table(table_id, Actor.STAFF)
