"""API package initialization."""
from clinic_booking.api.models import (
    AppointmentCreateRequest,
    AvailabilityResponse,
    CapacityErrorResponse,
    ErrorResponse,
)

__all__ = [
    "AppointmentCreateRequest",
    "AvailabilityResponse",
    "CapacityErrorResponse",
    "ErrorResponse",
]
