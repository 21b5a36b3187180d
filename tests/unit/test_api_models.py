"""Test API request/response models."""
import pytest
from pydantic import ValidationError

from clinic_booking.api.models import (
    AppointmentCreateRequest,
    AppointmentUpdateRequest,
    BulkAvailabilityRequest,
    CapacityErrorResponse,
)
from clinic_booking.status import BookingStatus


def valid_payload(**overrides):
    payload = {
        "hospital": "gomoti",
        "date": "2025-09-10",
        "appointment_time": "05:00 PM - 06:00 PM",
        "patient_name": "Rahim Uddin",
        "patient_email": "rahim@example.com",
        "patient_phone": "+8801712345678",
        "patient_age": 34,
        "gender": "male",
    }
    payload.update(overrides)
    return payload


def test_create_request_accepts_valid_payload():
    request = AppointmentCreateRequest(**valid_payload())
    assert request.date == "2025-09-10"
    assert request.symptoms is None


def test_create_request_accepts_appointment_date_alias():
    payload = valid_payload()
    payload["appointment_date"] = payload.pop("date")

    request = AppointmentCreateRequest(**payload)

    assert request.date == "2025-09-10"


def test_create_request_sanitizes_text():
    request = AppointmentCreateRequest(**valid_payload(
        patient_name="<b>Rahim</b>  Uddin",
        symptoms="Fever <script>alert(1)</script>",
        gender="Male",
        patient_email="Rahim@Example.com"
    ))

    assert request.patient_name == "Rahim Uddin"
    assert request.symptoms == "Fever"
    assert request.gender == "male"
    assert request.patient_email == "rahim@example.com"


def test_create_request_address_is_optional_and_sanitized():
    assert AppointmentCreateRequest(**valid_payload()).patient_address is None

    request = AppointmentCreateRequest(**valid_payload(
        patient_address="  House 12, <i>Road</i> 4,  Cumilla "
    ))

    assert request.patient_address == "House 12, Road 4, Cumilla"


@pytest.mark.parametrize("field,value", [
    ("patient_email", "not-an-email"),
    ("patient_phone", "12"),
    ("patient_age", 121),
    ("patient_age", -1),
    ("gender", "unknown"),
    ("patient_name", "<b></b>x"),
    ("appointment_time", ""),
])
def test_create_request_rejects_invalid_fields(field, value):
    with pytest.raises(ValidationError):
        AppointmentCreateRequest(**valid_payload(**{field: value}))


def test_create_request_requires_date():
    payload = valid_payload()
    payload.pop("date")
    with pytest.raises(ValidationError):
        AppointmentCreateRequest(**payload)


def test_bulk_request_limits_entries():
    entries = [{"date": "2025-09-10", "time": "17:00"}] * 101
    with pytest.raises(ValidationError):
        BulkAvailabilityRequest(hospital_id="gomoti", date_time_slots=entries)

    with pytest.raises(ValidationError):
        BulkAvailabilityRequest(hospital_id="gomoti", date_time_slots=[])


def test_update_request_parses_status():
    request = AppointmentUpdateRequest(status="no-show")
    assert request.status == BookingStatus.NO_SHOW

    with pytest.raises(ValidationError):
        AppointmentUpdateRequest(status="archived")


def test_capacity_error_response_shape():
    body = CapacityErrorResponse(
        error="Slot Full",
        detail="full",
        code="CAPACITY_EXCEEDED",
        current_bookings=3,
        max_capacity=3
    ).model_dump()

    assert set(body) == {"error", "detail", "code", "current_bookings", "max_capacity"}
