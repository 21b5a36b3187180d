"""SQLAlchemy database models for the booking ledger."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import declarative_base

from clinic_booking.status import BookingStatus

Base = declarative_base()

ACTIVE_BOOKING_CONDITION = text("status != 'cancelled'")


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def new_appointment_id() -> str:
    return uuid.uuid4().hex


class Appointment(Base):
    """
    One booking of one slot unit.

    Active bookings (status != cancelled) of a slot each hold a distinct
    ``slot_ordinal`` in 1..capacity. The partial unique index makes the
    database reject a second holder of the same ordinal, so a slot can never
    hold more active bookings than it has ordinals.
    """
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True, default=new_appointment_id)
    reference_number = Column(String(16), nullable=False, unique=True, index=True)

    hospital_id = Column(String(50), nullable=False, index=True)
    hospital_name = Column(String(200), nullable=False)
    appointment_date = Column(Date, nullable=False, index=True)
    slot_id = Column(String(80), nullable=False)
    time_slot = Column(String(50), nullable=False)  # display label at booking time
    slot_ordinal = Column(Integer, nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True
    )

    patient_name = Column(String(100), nullable=False)
    patient_email = Column(String(255), nullable=False, index=True)
    patient_phone = Column(String(30), nullable=False)
    patient_address = Column(String(300), nullable=True)
    patient_age = Column(Integer, nullable=True)
    gender = Column(String(10), nullable=True)
    symptoms = Column(Text, nullable=True)
    doctor_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_appointments_slot_key", "hospital_id", "appointment_date", "slot_id"),
        Index(
            "uq_appointments_active_slot_ordinal",
            "hospital_id",
            "appointment_date",
            "slot_id",
            "slot_ordinal",
            unique=True,
            sqlite_where=ACTIVE_BOOKING_CONDITION,
            postgresql_where=ACTIVE_BOOKING_CONDITION,
        ),
    )

    def __repr__(self):
        return (
            f"<Appointment(ref={self.reference_number}, hospital={self.hospital_id}, "
            f"date={self.appointment_date}, slot={self.slot_id}, status={self.status})>"
        )
