"""Error hierarchy for booking outcomes.

``retryable`` marks errors where the same request can succeed later:
- ValidationError / HospitalClosed: bad input or closed day; resending the
  same request always fails the same way
- CapacityExceeded / RaceConditionDetected: slot full at commit time; the
  request succeeds again once a booking of that slot is cancelled, so the
  client may offer another slot or try later, but not loop on it
- InternalError: timeout or database unavailable, safe to retry with backoff
"""
from typing import Optional


class BookingError(Exception):
    """Base exception for all booking subsystem errors."""

    code = "BOOKING_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Bad or missing input: past date, outside booking window, unknown slot."""

    code = "VALIDATION_ERROR"


class InvalidTimeSlot(ValidationError):
    """Requested time does not match any slot of that day."""

    code = "INVALID_TIME_SLOT"


class InvalidStatusTransition(ValidationError):
    """Requested appointment status change is not allowed."""

    code = "INVALID_STATUS_TRANSITION"


class HospitalNotFound(ValidationError):
    """Hospital reference does not resolve to a configured schedule."""

    code = "HOSPITAL_NOT_FOUND"
    http_status = 404


class AppointmentNotFound(BookingError):
    """Appointment id or reference number does not exist."""

    code = "APPOINTMENT_NOT_FOUND"
    http_status = 404


class HospitalClosed(BookingError):
    """Valid request, but the hospital has no slots on that day."""

    code = "HOSPITAL_CLOSED"


class CapacityExceeded(BookingError):
    """Slot is fully booked."""

    code = "CAPACITY_EXCEEDED"
    http_status = 409
    retryable = True

    def __init__(
        self,
        message: str,
        current_bookings: int,
        max_capacity: int
    ):
        super().__init__(message)
        self.current_bookings = current_bookings
        self.max_capacity = max_capacity


class RaceConditionDetected(CapacityExceeded):
    """Capacity check passed but a concurrent booking won the last unit."""

    code = "RACE_CONDITION_DETECTED"


class InternalError(BookingError):
    """Transaction timeout or database failure. Never means "slot full"."""

    code = "INTERNAL_ERROR"
    http_status = 503
    retryable = True

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
