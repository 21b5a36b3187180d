"""Pydantic models for API request/response validation."""
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from clinic_booking import config
from clinic_booking.input_sanitizer import InputSanitizer
from clinic_booking.status import BookingStatus


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Hospital Closed",
                "detail": "Gomoti Hospital is closed on Fridays",
                "code": "HOSPITAL_CLOSED"
            }
        }
    )


class CapacityErrorResponse(ErrorResponse):
    """409 body: the slot is full."""
    current_bookings: int
    max_capacity: int

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Slot Full",
                "detail": "05:00 PM - 06:00 PM on 2025-09-10 is fully booked",
                "code": "CAPACITY_EXCEEDED",
                "current_bookings": 25,
                "max_capacity": 25
            }
        }
    )


# -- availability ------------------------------------------------------

class AvailabilityResponse(BaseModel):
    """Live availability of one slot."""
    hospital_id: str
    date: date
    time: str = Field(..., description="Slot display label")
    slot_id: Optional[str] = None
    max_capacity: int
    current_bookings: int
    available_slots: int
    is_available: bool
    status: str = Field(..., description="available, full, closed, not_found or invalid_slot")
    reason: Optional[str] = None
    last_updated: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "hospital_id": "gomoti",
                "date": "2025-09-10",
                "time": "05:00 PM - 06:00 PM",
                "slot_id": "gomoti:wednesday:1700",
                "max_capacity": 25,
                "current_bookings": 3,
                "available_slots": 22,
                "is_available": True,
                "status": "available",
                "reason": None,
                "last_updated": "2025-09-08T10:00:00Z"
            }
        }
    )

    @classmethod
    def from_view(cls, view, last_updated: datetime) -> "AvailabilityResponse":
        return cls(
            hospital_id=view.hospital_id,
            date=view.date,
            time=view.time_slot,
            slot_id=view.slot_id,
            max_capacity=view.capacity,
            current_bookings=view.current_bookings,
            available_slots=view.remaining,
            is_available=view.is_available,
            status=view.status,
            reason=view.reason,
            last_updated=last_updated,
        )


class DateTimeSlot(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    time: str = Field(..., min_length=1, max_length=80, description="Slot label, start time or slot_id")


class BulkAvailabilityRequest(BaseModel):
    """Request schema for /api/availability/bulk."""
    hospital_id: str = Field(..., min_length=1, max_length=200)
    date_time_slots: List[DateTimeSlot] = Field(
        ...,
        min_length=1,
        max_length=config.BULK_MAX_SLOTS
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "hospital_id": "gomoti",
                "date_time_slots": [
                    {"date": "2025-09-10", "time": "05:00 PM - 06:00 PM"},
                    {"date": "2025-09-10", "time": "18:00"}
                ]
            }
        }
    )


class BulkAvailabilityResponse(BaseModel):
    hospital_id: str
    slots: List[AvailabilityResponse]
    last_updated: datetime


class DayAvailabilityResponse(BaseModel):
    hospital_id: str
    hospital_name: str
    date: date
    is_closed: bool
    reason: Optional[str] = None
    slots: List[AvailabilityResponse]
    last_updated: datetime


# -- appointments ------------------------------------------------------

class AppointmentCreateRequest(BaseModel):
    """Request schema for POST /api/appointments."""
    hospital: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Hospital id, name or alias",
        examples=["gomoti", "Gomoti Hospital"]
    )
    date: str = Field(
        ...,
        validation_alias=AliasChoices("date", "appointment_date"),
        description="Appointment date, YYYY-MM-DD"
    )
    appointment_time: str = Field(
        ...,
        min_length=1,
        max_length=80,
        description="Slot label, start time or slot_id",
        examples=["05:00 PM - 06:00 PM"]
    )
    patient_name: str = Field(..., min_length=2, max_length=100)
    patient_email: str = Field(..., max_length=255)
    patient_phone: str = Field(..., min_length=7, max_length=30)
    patient_address: Optional[str] = Field(None, max_length=300)
    patient_age: int = Field(..., ge=0, le=120)
    gender: Literal["male", "female", "other"]
    symptoms: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "hospital": "gomoti",
                "date": "2025-09-10",
                "appointment_time": "05:00 PM - 06:00 PM",
                "patient_name": "Rahim Uddin",
                "patient_email": "rahim@example.com",
                "patient_phone": "+8801712345678",
                "patient_age": 34,
                "gender": "male",
                "symptoms": "Chest pain"
            }
        }
    )

    @field_validator("patient_name", "patient_address", "symptoms")
    @classmethod
    def sanitize_text(cls, v: Optional[str]) -> Optional[str]:
        return InputSanitizer.sanitize_text(v)

    @field_validator("patient_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if len(v) < 2:
            raise ValueError("Patient name must be at least 2 characters")
        return v

    @field_validator("patient_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return InputSanitizer.sanitize_phone(v)

    @field_validator("patient_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return InputSanitizer.sanitize_email(v)

    @field_validator("gender", mode="before")
    @classmethod
    def lowercase_gender(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class AppointmentResponse(BaseModel):
    """Full appointment record (admin views)."""
    id: str
    reference_number: str
    hospital_id: str
    hospital_name: str
    appointment_date: date
    slot_id: str
    time_slot: str
    status: BookingStatus
    patient_name: str
    patient_email: str
    patient_phone: str
    patient_address: Optional[str] = None
    patient_age: Optional[int] = None
    gender: Optional[str] = None
    symptoms: Optional[str] = None
    doctor_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SlotInfo(BaseModel):
    current_bookings: int
    max_capacity: int
    remaining_slots: int


class AppointmentCreatedResponse(BaseModel):
    message: str
    appointment: AppointmentResponse
    slot_info: SlotInfo


class AppointmentTrackResponse(BaseModel):
    """Public tracking view: no patient contact details."""
    reference_number: str
    patient_name: str
    hospital_name: str
    appointment_date: date
    time_slot: str
    status: BookingStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AppointmentUpdateRequest(BaseModel):
    """Request schema for PUT /api/appointments/{id}."""
    status: Optional[BookingStatus] = None
    doctor_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("doctor_notes")
    @classmethod
    def sanitize_notes(cls, v: Optional[str]) -> Optional[str]:
        return InputSanitizer.sanitize_text(v)


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    count: int
    skip: int
    limit: int


class AppointmentStatsResponse(BaseModel):
    total_appointments: int
    today_appointments: int
    upcoming_appointments: int
    pending_appointments: int
    confirmed_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    no_show_appointments: int


# -- calendar and schedules -------------------------------------------

class DaySummaryResponse(BaseModel):
    date: date
    day_name: str
    is_past: bool
    is_closed: bool
    total_slots: int
    total_capacity: int
    used_capacity: int
    available_capacity: int
    reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CalendarResponse(BaseModel):
    hospital_id: str
    hospital_name: str
    start_date: date
    calendar: List[DaySummaryResponse]


class SlotDefinitionResponse(BaseModel):
    slot_id: str
    start_time: str
    end_time: str
    display_label: str


class HospitalScheduleSummary(BaseModel):
    hospital_id: str
    hospital_name: str
    doctor_name: Optional[str] = None
    capacity_per_slot: int
    advance_booking_days: int
    operating_days: List[str]


class HospitalScheduleResponse(HospitalScheduleSummary):
    aliases: List[str]
    slots_per_day: Dict[str, List[SlotDefinitionResponse]]


class OperatingDayResponse(BaseModel):
    day: str
    day_index: int
    slot_count: int


class DaySlotsResponse(BaseModel):
    hospital_id: str
    day: str
    slots: List[SlotDefinitionResponse]
