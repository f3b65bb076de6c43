"""Shared dependencies and error mapping for API routers."""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.restaurant_config import ConfigurationError
from domain.enums import Rejection
from domain.models import ErrorResponse, ReservationResponse
from domain.results import ReservationResult
from services.reservation_service import (
    ReservationNotFoundError,
    ReservationService,
    get_reservation_service,
)
from services.table_inventory import DuplicateTableError, TableNotFoundError


REJECTION_STATUS = {
    Rejection.OUT_OF_WINDOW: status.HTTP_400_BAD_REQUEST,
    Rejection.INVALID_SLOT: status.HTTP_400_BAD_REQUEST,
    Rejection.CANCELLATION_WINDOW_PASSED: status.HTTP_400_BAD_REQUEST,
    Rejection.FULLY_BOOKED: status.HTTP_409_CONFLICT,
    Rejection.SLOT_TAKEN: status.HTTP_409_CONFLICT,
    Rejection.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
}


def get_service() -> ReservationService:
    """
    Dependency for getting the reservation service.

    Returns:
        ReservationService instance
    """
    return get_reservation_service()


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def result_response(result: ReservationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Render a ReservationResult, mapping rejections to HTTP status codes."""
    if not result.success:
        return error_response(REJECTION_STATUS[result.rejection], result.rejection.value, result.message)

    body = ReservationResponse(reservation=result.reservation, replayed=result.replayed)
    code = status.HTTP_200_OK if result.replayed else success_status
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, "not_found", str(exc))


async def duplicate_table_handler(request: Request, exc: DuplicateTableError) -> JSONResponse:
    return error_response(status.HTTP_409_CONFLICT, "duplicate_table", str(exc))


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "configuration_error", str(exc))


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    # Server-side model failures surface as 500s.
    if isinstance(exc, ValidationError):
        raise exc
    return error_response(status.HTTP_400_BAD_REQUEST, "invalid_request", str(exc))


EXCEPTION_HANDLERS = {
    ReservationNotFoundError: not_found_handler,
    TableNotFoundError: not_found_handler,
    DuplicateTableError: duplicate_table_handler,
    ConfigurationError: configuration_error_handler,
    ValueError: value_error_handler,
}
