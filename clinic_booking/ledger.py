"""Booking ledger: the durable record of appointments.

Live row counts in this table are the only source of truth for slot
occupancy. There is no denormalized counter to keep in sync.
"""
from contextlib import contextmanager
from datetime import date, datetime, UTC
from typing import Dict, Iterator, List, Optional, Set, Tuple

from sqlalchemy import create_engine, event, func, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session as SQLSession, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_booking import config
from clinic_booking.api.database_models import Appointment, Base
from clinic_booking.errors import AppointmentNotFound, InvalidStatusTransition
from clinic_booking.status import BookingStatus, validate_transition

SlotCounts = Dict[Tuple[date, str], int]

BEGIN_IMMEDIATE_OPTION = "sqlite_begin_immediate"


def create_ledger_engine(database_url: str, timeout_seconds: float) -> Engine:
    """
    Create the SQLAlchemy engine for the ledger.

    SQLite: write transactions (connections carrying the
    ``sqlite_begin_immediate`` execution option) start with BEGIN IMMEDIATE,
    so concurrent writers queue on the busy timeout instead of failing on a
    read-to-write lock upgrade. Reads use a deferred BEGIN and never wait for
    writers. In-memory databases share one connection.
    """
    if not database_url.startswith("sqlite"):
        # Plain postgresql:// URLs (as psycopg takes them) use the psycopg 3 driver
        if database_url.startswith("postgresql://"):
            database_url = "postgresql+psycopg://" + database_url[len("postgresql://"):]
        return create_engine(database_url, pool_pre_ping=True)

    engine_kwargs = {
        "connect_args": {"timeout": timeout_seconds, "check_same_thread": False},
    }
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(BEGIN_IMMEDIATE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


class BookingLedger:
    """
    Persistence for appointments.

    Responsibilities:
    - Bounded transactions for the booking hot path
    - Live counts of active (non-cancelled) bookings per slot
    - Appointment lookup, listing, status changes and purge

    Pattern: Thin wrapper around SQLAlchemy, one session per operation.
    """

    def __init__(
        self,
        database_url: str = config.DATABASE_URL,
        timeout_seconds: float = config.BOOKING_TIMEOUT_SECONDS
    ):
        """
        Initialize ledger with database connection.

        Args:
            database_url: SQLAlchemy connection string
            timeout_seconds: Upper bound for lock waits inside a transaction
        """
        self.timeout_seconds = timeout_seconds
        self.engine = create_ledger_engine(database_url, timeout_seconds)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        # Sessions that write take the SQLite write lock up front
        self.WriteSession = sessionmaker(
            bind=self.engine.execution_options(**{BEGIN_IMMEDIATE_OPTION: True}),
            expire_on_commit=False
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def close(self):
        """Release pooled connections."""
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[SQLSession]:
        """
        Unit of work for a booking attempt.

        Commits when the block exits normally and rolls back on any exception,
        including a caller abandoning the attempt.
        """
        with self.WriteSession() as db:
            with db.begin():
                if self.dialect == "postgresql":
                    # SET does not accept bind parameters
                    timeout_ms = int(self.timeout_seconds * 1000)
                    db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
                yield db

    # -- slot occupancy -------------------------------------------------

    @staticmethod
    def _active_slot_query(db: SQLSession, columns, hospital_id: str, day: date, slot_id: str):
        return db.query(*columns).filter(
            Appointment.hospital_id == hospital_id,
            Appointment.appointment_date == day,
            Appointment.slot_id == slot_id,
            Appointment.status != BookingStatus.CANCELLED.value
        )

    def count_active(self, db: SQLSession, hospital_id: str, day: date, slot_id: str) -> int:
        """Count active bookings of one slot inside an open session."""
        return self._active_slot_query(
            db, [func.count(Appointment.id)], hospital_id, day, slot_id
        ).scalar() or 0

    def held_ordinals(self, db: SQLSession, hospital_id: str, day: date, slot_id: str) -> Set[int]:
        """Ordinals currently held by active bookings of one slot."""
        rows = self._active_slot_query(
            db, [Appointment.slot_ordinal], hospital_id, day, slot_id
        ).all()
        return {row[0] for row in rows}

    def count_active_bookings(self, hospital_id: str, day: date, slot_id: str) -> int:
        """Count active bookings of one slot."""
        with self.SessionLocal() as db:
            return self.count_active(db, hospital_id, day, slot_id)

    def count_by_slot(self, hospital_id: str, start: date, end: date) -> SlotCounts:
        """
        Active booking counts for every slot between two dates (inclusive),
        in one grouped query.

        Returns:
            {(date, slot_id): count}; slots without bookings are absent
        """
        with self.SessionLocal() as db:
            rows = db.query(
                Appointment.appointment_date,
                Appointment.slot_id,
                func.count(Appointment.id)
            ).filter(
                Appointment.hospital_id == hospital_id,
                Appointment.appointment_date >= start,
                Appointment.appointment_date <= end,
                Appointment.status != BookingStatus.CANCELLED.value
            ).group_by(
                Appointment.appointment_date,
                Appointment.slot_id
            ).all()

        return {(row[0], row[1]): row[2] for row in rows}

    # -- appointment records -------------------------------------------

    def get(self, appointment_id: str) -> Appointment:
        """
        Raises:
            AppointmentNotFound: If no appointment has this id
        """
        with self.SessionLocal() as db:
            appointment = db.get(Appointment, appointment_id)
            if not appointment:
                raise AppointmentNotFound(f"Appointment {appointment_id} not found")
            return appointment

    def get_by_reference(self, reference_number: str) -> Appointment:
        """
        Raises:
            AppointmentNotFound: If no appointment has this reference number
        """
        with self.SessionLocal() as db:
            appointment = db.query(Appointment).filter(
                Appointment.reference_number == reference_number.upper()
            ).first()
            if not appointment:
                raise AppointmentNotFound(
                    f"Appointment not found with reference number {reference_number}"
                )
            return appointment

    def list_appointments(
        self,
        day: Optional[date] = None,
        hospital_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        limit: int = 100,
        skip: int = 0
    ) -> List[Appointment]:
        """List appointments, latest date first, then by slot."""
        with self.SessionLocal() as db:
            query = db.query(Appointment)
            if day:
                query = query.filter(Appointment.appointment_date == day)
            if hospital_id:
                query = query.filter(Appointment.hospital_id == hospital_id)
            if status:
                query = query.filter(Appointment.status == BookingStatus(status).value)

            return query.order_by(
                Appointment.appointment_date.desc(),
                Appointment.slot_id.asc(),
                Appointment.created_at.asc()
            ).offset(skip).limit(limit).all()

    def update_status(
        self,
        appointment_id: str,
        status: Optional[BookingStatus] = None,
        doctor_notes: Optional[str] = None
    ) -> Appointment:
        """
        Change status and/or doctor notes of one appointment.

        Raises:
            AppointmentNotFound: Unknown id
            InvalidStatusTransition: Status change not allowed from the current status
        """
        with self.WriteSession() as db:
            with db.begin():
                appointment = db.get(Appointment, appointment_id)
                if not appointment:
                    raise AppointmentNotFound(f"Appointment {appointment_id} not found")

                if status is not None and BookingStatus(status).value != appointment.status:
                    current = BookingStatus(appointment.status)
                    intended = BookingStatus(status)
                    if not validate_transition(current, intended):
                        raise InvalidStatusTransition(
                            f"Cannot change appointment status from "
                            f"'{current.value}' to '{intended.value}'"
                        )
                    appointment.status = intended.value

                if doctor_notes is not None:
                    appointment.doctor_notes = doctor_notes

                appointment.updated_at = datetime.now(UTC)

            return appointment

    def purge(self, appointment_id: str) -> Appointment:
        """
        Permanently delete an appointment (explicit admin action only).

        Raises:
            AppointmentNotFound: Unknown id
        """
        with self.WriteSession() as db:
            with db.begin():
                appointment = db.get(Appointment, appointment_id)
                if not appointment:
                    raise AppointmentNotFound(f"Appointment {appointment_id} not found")
                db.delete(appointment)
            return appointment

    def stats(self, today: date) -> Dict[str, int]:
        """Appointment totals per status plus today's and upcoming counts."""
        with self.SessionLocal() as db:
            per_status = dict(
                db.query(Appointment.status, func.count(Appointment.id))
                .group_by(Appointment.status)
                .all()
            )
            today_count = db.query(func.count(Appointment.id)).filter(
                Appointment.appointment_date == today
            ).scalar() or 0
            upcoming_count = db.query(func.count(Appointment.id)).filter(
                Appointment.appointment_date > today
            ).scalar() or 0

        stats = {
            "total_appointments": sum(per_status.values()),
            "today_appointments": today_count,
            "upcoming_appointments": upcoming_count,
        }
        for status in BookingStatus:
            key = f"{status.value.replace('-', '_')}_appointments"
            stats[key] = per_status.get(status.value, 0)
        return stats
