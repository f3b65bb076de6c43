"""
Reservation lifecycle state machine.

Every status change goes through TRANSITIONS; anything not listed there is
rejected before the reservation row is touched.
"""
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Tuple

from core.restaurant_config import ReservationPolicy
from domain.enums import Actor, LifecycleEvent, Rejection, ReservationStatus


TRANSITIONS: Dict[Tuple[ReservationStatus, LifecycleEvent], ReservationStatus] = {
    (ReservationStatus.PENDING, LifecycleEvent.CONFIRM): ReservationStatus.CONFIRMED,
    (ReservationStatus.PENDING, LifecycleEvent.CANCEL): ReservationStatus.CANCELLED,
    (ReservationStatus.CONFIRMED, LifecycleEvent.CANCEL): ReservationStatus.CANCELLED,
    (ReservationStatus.CONFIRMED, LifecycleEvent.COMPLETE): ReservationStatus.COMPLETED,
}


class LifecycleError(Exception):
    """Base class for refused lifecycle events."""
    rejection: Rejection = Rejection.INVALID_TRANSITION


class InvalidTransitionError(LifecycleError):
    """Raised when an event is not allowed from the current status."""

    def __init__(self, status: ReservationStatus, event: LifecycleEvent, detail: str = ""):
        self.status = status
        self.event = event
        message = f"Cannot {event.value} a {status.value} reservation"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CancellationWindowPassedError(LifecycleError):
    """Raised when a confirmed reservation is cancelled too close to its start."""
    rejection = Rejection.CANCELLATION_WINDOW_PASSED

    def __init__(self, deadline: datetime):
        self.deadline = deadline
        super().__init__(
            f"Confirmed reservations can only be cancelled until {deadline.strftime('%Y-%m-%d %H:%M')}"
        )


def allowed_events(status: ReservationStatus) -> FrozenSet[LifecycleEvent]:
    """Events the transition table accepts from `status`."""
    return frozenset(event for (source, event) in TRANSITIONS if source == status)


def next_status(status: ReservationStatus, event: LifecycleEvent) -> ReservationStatus:
    """
    Look up the target status of an event.

    Raises:
        InvalidTransitionError: If the pair is not in the transition table
    """
    try:
        return TRANSITIONS[(status, event)]
    except KeyError:
        raise InvalidTransitionError(status, event) from None


class ReservationLifecycle:
    """Applies transition guards that depend on policy and time."""

    def __init__(self, policy: ReservationPolicy):
        self.policy = policy

    def cancellation_deadline(self, start: datetime) -> datetime:
        """Latest moment a confirmed reservation may still be cancelled."""
        return start - timedelta(hours=self.policy.min_hours_in_advance)

    def can_cancel(self, status: ReservationStatus, start: datetime, now: datetime) -> bool:
        if status == ReservationStatus.PENDING:
            return True
        if status == ReservationStatus.CONFIRMED:
            return now <= self.cancellation_deadline(start)
        return False

    def cancel(self, status: ReservationStatus, start: datetime, now: datetime) -> ReservationStatus:
        """
        Raises:
            InvalidTransitionError: From a terminal status
            CancellationWindowPassedError: Confirmed and past the deadline
        """
        target = next_status(status, LifecycleEvent.CANCEL)
        if status == ReservationStatus.CONFIRMED and now > self.cancellation_deadline(start):
            raise CancellationWindowPassedError(self.cancellation_deadline(start))
        return target

    def confirm(self, status: ReservationStatus) -> ReservationStatus:
        """The table re-check is the caller's job; this only validates the status."""
        return next_status(status, LifecycleEvent.CONFIRM)

    def complete(self, status: ReservationStatus, end: datetime, now: datetime, actor: Actor) -> ReservationStatus:
        """
        Staff may complete a confirmed reservation at any time; anyone else
        only once it has ended.

        Raises:
            InvalidTransitionError: Not confirmed, or not yet ended for a non-staff actor
        """
        target = next_status(status, LifecycleEvent.COMPLETE)
        if actor != Actor.STAFF and now < end:
            raise InvalidTransitionError(
                status,
                LifecycleEvent.COMPLETE,
                f"it runs until {end.strftime('%Y-%m-%d %H:%M')}",
            )
        return target
