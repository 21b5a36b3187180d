"""FastAPI server for clinic appointment booking.

Features:
- Live slot availability (single, bulk, per day) and calendar summaries
- Atomic, capacity-checked appointment booking
- Appointment tracking and admin management
- Hospital schedule lookup
- Structured logging with request IDs
"""
import re
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_booking import config
from clinic_booking.api.dependencies import (
    check_rate_limit,
    get_availability_calculator,
    get_booking_manager,
    get_calendar_aggregator,
    get_catalog,
    get_ledger,
    get_today_provider,
)
from clinic_booking.api.models import (
    AppointmentCreatedResponse,
    AppointmentCreateRequest,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatsResponse,
    AppointmentTrackResponse,
    AppointmentUpdateRequest,
    AvailabilityResponse,
    BulkAvailabilityRequest,
    BulkAvailabilityResponse,
    CalendarResponse,
    CapacityErrorResponse,
    DayAvailabilityResponse,
    DaySlotsResponse,
    DaySummaryResponse,
    ErrorResponse,
    HospitalScheduleResponse,
    HospitalScheduleSummary,
    OperatingDayResponse,
    SlotDefinitionResponse,
    SlotInfo,
)
from clinic_booking.availability import AvailabilityCalculator
from clinic_booking.booking import BookingTransactionManager, PatientDetails
from clinic_booking.calendar_view import CalendarAggregator
from clinic_booking.dates import WEEKDAYS, normalize_weekday, parse_calendar_date
from clinic_booking.errors import BookingError, CapacityExceeded, InternalError, ValidationError
from clinic_booking.ledger import BookingLedger
from clinic_booking.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from clinic_booking.schedule_catalog import ScheduleCatalog
from clinic_booking.status import BookingStatus

logger = get_logger(__name__)

SERVICE_NAME = "clinic-booking-api"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    setup_structured_logging(config.LOG_LEVEL)
    logger.info("server_starting", version=SERVICE_VERSION)

    # Startup: fail fast on bad schedules or an unreachable database
    try:
        catalog = get_catalog()
        get_ledger()
        logger.info("server_ready", hospitals=catalog.hospital_ids())
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    get_ledger().close()
    logger.info("server_stopped")


app = FastAPI(
    title="Clinic Booking API",
    description="Slot-capacity booking and availability for clinic appointments",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Retry-After"],
)
app.add_middleware(RequestIDMiddleware)


def _error_title(exc: Exception) -> str:
    """'CapacityExceeded' -> 'Capacity Exceeded'."""
    return re.sub(r"(?<!^)(?=[A-Z])", " ", type(exc).__name__)


def _now() -> datetime:
    return datetime.now(UTC)


# Global exception handlers
@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Translate domain errors into ErrorResponse bodies."""
    if isinstance(exc, CapacityExceeded):
        content = CapacityErrorResponse(
            error="Slot Full",
            detail=exc.message,
            code=exc.code,
            current_bookings=exc.current_bookings,
            max_capacity=exc.max_capacity
        ).model_dump()
    else:
        content = ErrorResponse(
            error=_error_title(exc),
            detail=exc.message,
            code=exc.code
        ).model_dump()

    if isinstance(exc, InternalError):
        logger.error("internal_error", detail=exc.message, cause=str(exc.cause))
        return JSONResponse(
            status_code=exc.http_status,
            content=content,
            headers={"Retry-After": "1"}
        )

    return JSONResponse(status_code=exc.http_status, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("request_validation_failed", errors=str(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="Validation Error",
            detail=str(exc.errors()),
            code="VALIDATION_ERROR"
        ).model_dump()
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Wrap HTTP errors (404 routes, 429 rate limit) in ErrorResponse."""
    code = "RATE_LIMIT_EXCEEDED" if exc.status_code == 429 else f"HTTP_{exc.status_code}"
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error="Rate limit exceeded" if exc.status_code == 429 else "Request Failed",
            detail=str(exc.detail),
            code=code
        ).model_dump(),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError):
    """Database unavailable or timed out outside the booking path."""
    logger.error("database_error", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(
            error="Service Unavailable",
            detail="Database is temporarily unavailable. Please try again.",
            code="INTERNAL_ERROR"
        ).model_dump(),
        headers={"Retry-After": "1"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal Server Error",
            detail="An unexpected error occurred. Please try again later.",
            code="UNEXPECTED_ERROR"
        ).model_dump()
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API info."""
    return {
        "message": "Clinic Booking API",
        "docs": "/docs",
        "health": "/health"
    }


# -- availability ------------------------------------------------------

@app.get(
    "/api/availability/{hospital_id}/{date}/{time_slot}",
    tags=["Availability"],
    response_model=AvailabilityResponse
)
def get_slot_availability(
    hospital_id: str,
    date: str,
    time_slot: str,
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    """
    Live availability of one slot.

    Unknown hospitals, closed days and unknown slots return 200 with
    is_available=false and a status explaining why.
    """
    view = calculator.check_availability(hospital_id, date, time_slot)
    return AvailabilityResponse.from_view(view, _now())


@app.get(
    "/api/availability/{hospital_id}/{date}",
    tags=["Availability"],
    response_model=DayAvailabilityResponse
)
def get_day_availability(
    hospital_id: str,
    date: str,
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    """Every slot of a day with live booking counts."""
    day = calculator.day_availability(hospital_id, date)
    now = _now()
    return DayAvailabilityResponse(
        hospital_id=day.hospital_id,
        hospital_name=day.hospital_name,
        date=day.date,
        is_closed=day.is_closed,
        reason=day.reason,
        slots=[AvailabilityResponse.from_view(view, now) for view in day.slots],
        last_updated=now
    )


@app.post(
    "/api/availability/bulk",
    tags=["Availability"],
    response_model=BulkAvailabilityResponse
)
def post_bulk_availability(
    request: BulkAvailabilityRequest,
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    """Availability of many (date, time) pairs with one grouped count query."""
    views = calculator.check_bulk_availability(
        request.hospital_id,
        [(entry.date, entry.time) for entry in request.date_time_slots]
    )
    now = _now()
    return BulkAvailabilityResponse(
        hospital_id=views[0].hospital_id,
        slots=[AvailabilityResponse.from_view(view, now) for view in views],
        last_updated=now
    )


# -- appointments ------------------------------------------------------

@app.post(
    "/api/appointments",
    tags=["Appointments"],
    status_code=status.HTTP_201_CREATED,
    response_model=AppointmentCreatedResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": CapacityErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    dependencies=[Depends(check_rate_limit)]
)
def create_appointment(
    request: AppointmentCreateRequest,
    manager: BookingTransactionManager = Depends(get_booking_manager)
):
    """
    Book one unit of capacity in a slot.

    Returns:
        201 with the pending appointment and slot_info

    Raises:
        400: Closed day, past date, outside booking window, unknown slot
        404: Unknown hospital
        409: Slot full (CAPACITY_EXCEEDED or RACE_CONDITION_DETECTED)
        429: Rate limited
        503: Database timeout or unavailable, safe to retry
    """
    result = manager.attempt_booking(
        request.hospital,
        request.date,
        request.appointment_time,
        PatientDetails(
            name=request.patient_name,
            email=request.patient_email,
            phone=request.patient_phone,
            address=request.patient_address,
            age=request.patient_age,
            gender=request.gender,
            symptoms=request.symptoms,
        )
    )
    return AppointmentCreatedResponse(
        message="Appointment booked successfully",
        appointment=AppointmentResponse.model_validate(result.appointment),
        slot_info=SlotInfo(**result.slot_info)
    )


@app.get(
    "/api/appointments/track/{reference_number}",
    tags=["Appointments"],
    response_model=AppointmentTrackResponse
)
def track_appointment(
    reference_number: str,
    ledger: BookingLedger = Depends(get_ledger)
):
    """Public appointment lookup by reference number."""
    return AppointmentTrackResponse.model_validate(ledger.get_by_reference(reference_number))


@app.get(
    "/api/appointments/stats/overview",
    tags=["Admin"],
    response_model=AppointmentStatsResponse
)
def appointment_stats(
    ledger: BookingLedger = Depends(get_ledger),
    today=Depends(get_today_provider)
):
    """Appointment totals per status, today and upcoming."""
    return AppointmentStatsResponse(**ledger.stats(today()))


@app.get(
    "/api/appointments",
    tags=["Admin"],
    response_model=AppointmentListResponse
)
def list_appointments(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    hospital_id: Optional[str] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
    ledger: BookingLedger = Depends(get_ledger),
    catalog: ScheduleCatalog = Depends(get_catalog)
):
    """List appointments, latest date first."""
    day = parse_calendar_date(date) if date else None
    canonical_id = catalog.get_schedule(hospital_id).hospital_id if hospital_id else None

    appointments = ledger.list_appointments(
        day=day,
        hospital_id=canonical_id,
        status=status_filter,
        limit=limit,
        skip=skip
    )
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments],
        count=len(appointments),
        skip=skip,
        limit=limit
    )


@app.get(
    "/api/appointments/{appointment_id}",
    tags=["Admin"],
    response_model=AppointmentResponse
)
def get_appointment(
    appointment_id: str,
    ledger: BookingLedger = Depends(get_ledger)
):
    return AppointmentResponse.model_validate(ledger.get(appointment_id))


@app.put(
    "/api/appointments/{appointment_id}",
    tags=["Admin"],
    response_model=AppointmentResponse
)
def update_appointment(
    appointment_id: str,
    request: AppointmentUpdateRequest,
    manager: BookingTransactionManager = Depends(get_booking_manager)
):
    """
    Change status and/or doctor notes.

    Raises:
        400: Status transition not allowed
        404: Unknown appointment
    """
    if request.status is None and request.doctor_notes is None:
        raise ValidationError("Provide status and/or doctor_notes")

    appointment = manager.update_status(
        appointment_id,
        status=request.status,
        doctor_notes=request.doctor_notes
    )
    return AppointmentResponse.model_validate(appointment)


@app.delete("/api/appointments/{appointment_id}", tags=["Admin"])
def delete_appointment(
    appointment_id: str,
    manager: BookingTransactionManager = Depends(get_booking_manager)
):
    """Permanently delete an appointment."""
    appointment = manager.purge(appointment_id)
    return {
        "message": "Appointment deleted",
        "id": appointment_id,
        "reference_number": appointment.reference_number
    }


# -- calendar ----------------------------------------------------------

@app.get(
    "/api/calendar/{hospital_id}",
    tags=["Calendar"],
    response_model=CalendarResponse
)
def get_calendar(
    hospital_id: str,
    days: int = Query(config.CALENDAR_DEFAULT_DAYS, description="Number of days"),
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD, default today"),
    aggregator: CalendarAggregator = Depends(get_calendar_aggregator)
):
    """Per-day capacity summaries for a hospital."""
    schedule = aggregator.catalog.get_schedule(hospital_id)
    summaries = aggregator.build_calendar(schedule.hospital_id, start_date, days)
    return CalendarResponse(
        hospital_id=schedule.hospital_id,
        hospital_name=schedule.hospital_name,
        start_date=summaries[0].date,
        calendar=[DaySummaryResponse.model_validate(summary) for summary in summaries]
    )


# -- hospital schedules -----------------------------------------------

def _schedule_summary(schedule) -> dict:
    return {
        "hospital_id": schedule.hospital_id,
        "hospital_name": schedule.hospital_name,
        "doctor_name": schedule.doctor_name,
        "capacity_per_slot": schedule.capacity_per_slot,
        "advance_booking_days": schedule.advance_booking_days,
        "operating_days": schedule.operating_days,
    }


@app.get(
    "/api/hospital-schedules",
    tags=["Schedules"],
    response_model=List[HospitalScheduleSummary]
)
def list_hospital_schedules(catalog: ScheduleCatalog = Depends(get_catalog)):
    return [HospitalScheduleSummary(**_schedule_summary(s)) for s in catalog.list_schedules()]


@app.get(
    "/api/hospital-schedules/{hospital_id}",
    tags=["Schedules"],
    response_model=HospitalScheduleResponse
)
def get_hospital_schedule(
    hospital_id: str,
    catalog: ScheduleCatalog = Depends(get_catalog)
):
    schedule = catalog.get_schedule(hospital_id)
    return HospitalScheduleResponse(
        **_schedule_summary(schedule),
        aliases=schedule.aliases,
        slots_per_day={
            day: [SlotDefinitionResponse(**slot.model_dump()) for slot in slots]
            for day, slots in schedule.slots_per_day.items()
        }
    )


@app.get(
    "/api/hospital-schedules/{hospital_id}/days",
    tags=["Schedules"],
    response_model=List[OperatingDayResponse]
)
def get_operating_days(
    hospital_id: str,
    catalog: ScheduleCatalog = Depends(get_catalog)
):
    """Operating weekdays with their slot counts."""
    schedule = catalog.get_schedule(hospital_id)
    return [
        OperatingDayResponse(
            day=day,
            day_index=WEEKDAYS.index(day),
            slot_count=len(schedule.slots_for(day))
        )
        for day in schedule.operating_days
    ]


@app.get(
    "/api/hospital-schedules/{hospital_id}/day/{day}/slots",
    tags=["Schedules"],
    response_model=DaySlotsResponse
)
def get_weekday_slots(
    hospital_id: str,
    day: str,
    catalog: ScheduleCatalog = Depends(get_catalog)
):
    """
    Slot definitions of a weekday (name or 0-6 index, Monday = 0).
    A closed weekday returns an empty list.
    """
    schedule = catalog.get_schedule(hospital_id)
    try:
        weekday = normalize_weekday(day)
    except ValueError as e:
        raise ValidationError(str(e))

    return DaySlotsResponse(
        hospital_id=schedule.hospital_id,
        day=weekday,
        slots=[SlotDefinitionResponse(**slot.model_dump()) for slot in schedule.slots_for(weekday)]
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "clinic_booking.api_server:app",
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.LOG_LEVEL.lower()
    )
