"""
Booking transaction manager.

Reserves one unit of slot capacity atomically:

1. Validate day, booking window and slot (no database access)
2. In one transaction: count active bookings, insert with the lowest free
   slot ordinal, re-count
3. Commit, or roll back and report why

The partial unique index on (hospital, date, slot, ordinal) makes the
database reject any row that would push a slot past capacity, whatever the
isolation level. A rejected insert means a concurrent booking took that
ordinal, so the attempt re-counts and tries again.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional, Union

from sqlalchemy.exc import DBAPIError, IntegrityError

from clinic_booking.api.database_models import Appointment
from clinic_booking.cache import AvailabilityCache
from clinic_booking.dates import parse_calendar_date
from clinic_booking.errors import (
    CapacityExceeded,
    HospitalClosed,
    InternalError,
    RaceConditionDetected,
    ValidationError,
)
from clinic_booking.ledger import BookingLedger
from clinic_booking.logging_config import get_logger
from clinic_booking.reference import generate_reference_number
from clinic_booking.schedule_catalog import ScheduleCatalog
from clinic_booking.schedule_config import HospitalSchedule, SlotDefinition
from clinic_booking.status import BookingStatus

logger = get_logger(__name__)

# Unique indexes whose violation means a concurrent booking won the race
CONFLICT_INDEX_COLUMNS = ("slot_ordinal", "reference_number")


def is_booking_conflict(error: IntegrityError) -> bool:
    """
    True when an insert was rejected by the slot-ordinal or reference-number
    unique index. SQLite names the columns, PostgreSQL the index.
    """
    message = str(error.orig).lower()
    return "unique" in message and any(name in message for name in CONFLICT_INDEX_COLUMNS)


@dataclass
class PatientDetails:
    name: str
    email: str
    phone: str
    address: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    symptoms: Optional[str] = None


@dataclass
class BookingResult:
    """A committed booking plus the slot's capacity state after commit."""
    appointment: Appointment
    current_bookings: int
    max_capacity: int

    @property
    def remaining_slots(self) -> int:
        return max(0, self.max_capacity - self.current_bookings)

    @property
    def slot_info(self) -> Dict[str, Any]:
        return {
            "current_bookings": self.current_bookings,
            "max_capacity": self.max_capacity,
            "remaining_slots": self.remaining_slots,
        }


class BookingTransactionManager:
    """
    The only writer of new bookings.

    Args:
        catalog: Hospital schedules
        ledger: Appointment storage
        cache: Availability cache to invalidate after writes
        today: Returns the current local calendar date
    """

    def __init__(
        self,
        catalog: ScheduleCatalog,
        ledger: BookingLedger,
        cache: Optional[AvailabilityCache] = None,
        today: Callable[[], date] = date.today
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.cache = cache
        self.today = today

    def attempt_booking(
        self,
        hospital_ref: str,
        day: Union[str, date],
        time_slot: str,
        patient: PatientDetails
    ) -> BookingResult:
        """
        Reserve one unit of capacity in a slot.

        Args:
            hospital_ref: Hospital id, name or alias
            day: Appointment date (date or YYYY-MM-DD)
            time_slot: Display label, start time or slot_id
            patient: Patient details stored on the booking

        Returns:
            BookingResult with the pending appointment and slot_info

        Raises:
            HospitalNotFound: Unknown hospital
            HospitalClosed: Closure weekday or non-operating day
            ValidationError: Past date, outside booking window, unknown slot,
                patient fields rejected by the database
            CapacityExceeded: Slot already full
            RaceConditionDetected: Lost the last unit to a concurrent booking
            InternalError: Timeout or database failure
        """
        day = parse_calendar_date(day)
        schedule = self.catalog.get_schedule(hospital_ref)
        slot = self._validate_request(schedule, day, time_slot)
        capacity = schedule.capacity_per_slot

        log = logger.bind(
            hospital_id=schedule.hospital_id,
            appointment_date=day.isoformat(),
            slot_id=slot.slot_id
        )

        # Each ordinal conflict means another booking committed, so at most
        # capacity conflicts can happen before the slot is genuinely full.
        for attempt in range(1, capacity + 2):
            try:
                result = self._reserve(schedule, day, slot, patient)
            except IntegrityError as e:
                if not is_booking_conflict(e):
                    log.warning("booking_rejected", attempt=attempt, error=str(e.orig))
                    raise ValidationError(
                        "Booking details were rejected, please check the patient fields"
                    ) from e
                log.warning("booking_ordinal_conflict", attempt=attempt)
                continue
            except CapacityExceeded as e:
                log.info(
                    "booking_capacity_exceeded",
                    code=e.code,
                    current_bookings=e.current_bookings,
                    max_capacity=e.max_capacity
                )
                raise
            except DBAPIError as e:
                log.error("booking_transaction_failed", attempt=attempt, error=str(e))
                raise InternalError(
                    "Booking could not be completed, please try again", cause=e
                ) from e

            if self.cache is not None:
                self.cache.invalidate(schedule.hospital_id)

            log.info(
                "booking_created",
                reference_number=result.appointment.reference_number,
                attempt=attempt,
                remaining_slots=result.remaining_slots
            )
            return result

        current = self._count_or_internal_error(schedule, day, slot)
        log.warning("booking_retries_exhausted", current_bookings=current)
        raise RaceConditionDetected(
            "Slot was booked by concurrent requests, please choose another time",
            current_bookings=current,
            max_capacity=capacity
        )

    def _validate_request(
        self,
        schedule: HospitalSchedule,
        day: date,
        time_slot: str
    ) -> SlotDefinition:
        # Closed days are rejected before any date-window check
        reason = self.catalog.closure_reason(schedule, day)
        if reason:
            raise HospitalClosed(reason)

        today = self.today()
        if day < today:
            raise ValidationError("Cannot book appointments in the past")

        if (day - today).days > schedule.advance_booking_days:
            raise ValidationError(
                f"Appointments can only be booked up to "
                f"{schedule.advance_booking_days} days in advance"
            )

        return self.catalog.resolve_slot(schedule.hospital_id, day, time_slot)

    def _reserve(
        self,
        schedule: HospitalSchedule,
        day: date,
        slot: SlotDefinition,
        patient: PatientDetails
    ) -> BookingResult:
        """One count-insert-recount transaction. Rolls back on any exception."""
        capacity = schedule.capacity_per_slot
        hospital_id = schedule.hospital_id

        with self.ledger.transaction() as db:
            count = self.ledger.count_active(db, hospital_id, day, slot.slot_id)
            if count >= capacity:
                raise CapacityExceeded(
                    f"{slot.display_label} on {day.isoformat()} is fully booked",
                    current_bookings=count,
                    max_capacity=capacity
                )

            held = self.ledger.held_ordinals(db, hospital_id, day, slot.slot_id)
            free = [n for n in range(1, capacity + 1) if n not in held]
            if not free:
                raise RaceConditionDetected(
                    f"{slot.display_label} on {day.isoformat()} was just fully booked",
                    current_bookings=len(held),
                    max_capacity=capacity
                )

            appointment = Appointment(
                reference_number=generate_reference_number(self.today()),
                hospital_id=hospital_id,
                hospital_name=schedule.hospital_name,
                appointment_date=day,
                slot_id=slot.slot_id,
                time_slot=slot.display_label,
                slot_ordinal=free[0],
                status=BookingStatus.PENDING.value,
                patient_name=patient.name,
                patient_email=patient.email,
                patient_phone=patient.phone,
                patient_address=patient.address,
                patient_age=patient.age,
                gender=patient.gender,
                symptoms=patient.symptoms,
            )
            db.add(appointment)
            db.flush()

            final_count = self.ledger.count_active(db, hospital_id, day, slot.slot_id)
            if final_count > capacity:
                raise RaceConditionDetected(
                    f"{slot.display_label} on {day.isoformat()} was just fully booked",
                    current_bookings=final_count - 1,
                    max_capacity=capacity
                )

        return BookingResult(
            appointment=appointment,
            current_bookings=final_count,
            max_capacity=capacity
        )

    def _count_or_internal_error(
        self,
        schedule: HospitalSchedule,
        day: date,
        slot: SlotDefinition
    ) -> int:
        try:
            return self.ledger.count_active_bookings(schedule.hospital_id, day, slot.slot_id)
        except DBAPIError as e:
            raise InternalError("Booking could not be completed, please try again", cause=e) from e

    def update_status(
        self,
        appointment_id: str,
        status: Optional[BookingStatus] = None,
        doctor_notes: Optional[str] = None
    ) -> Appointment:
        """
        Change an appointment's status or notes. Cancelling frees its slot unit
        at once.

        Raises:
            AppointmentNotFound, InvalidStatusTransition
        """
        appointment = self.ledger.update_status(appointment_id, status, doctor_notes)
        if self.cache is not None:
            self.cache.invalidate(appointment.hospital_id)

        logger.info(
            "appointment_updated",
            appointment_id=appointment_id,
            reference_number=appointment.reference_number,
            status=appointment.status
        )
        return appointment

    def cancel(self, appointment_id: str) -> Appointment:
        return self.update_status(appointment_id, BookingStatus.CANCELLED)

    def purge(self, appointment_id: str) -> Appointment:
        """
        Delete an appointment permanently.

        Raises:
            AppointmentNotFound
        """
        appointment = self.ledger.purge(appointment_id)
        if self.cache is not None:
            self.cache.invalidate(appointment.hospital_id)

        logger.info(
            "appointment_purged",
            appointment_id=appointment_id,
            reference_number=appointment.reference_number
        )
        return appointment
