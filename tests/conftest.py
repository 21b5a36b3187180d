"""Shared test fixtures."""
from datetime import date

import pytest

from clinic_booking.availability import AvailabilityCalculator
from clinic_booking.booking import BookingTransactionManager, PatientDetails
from clinic_booking.cache import AvailabilityCache
from clinic_booking.calendar_view import CalendarAggregator
from clinic_booking.ledger import BookingLedger
from clinic_booking.schedule_catalog import ScheduleCatalog
from clinic_booking.schedule_config import HospitalSchedule

# Monday. Wednesday 2025-09-10 is a Gomoti operating day, Friday 2025-09-12
# is the weekly closure day.
TODAY = date(2025, 9, 8)
WEDNESDAY = date(2025, 9, 10)
FRIDAY = date(2025, 9, 12)
EVENING_SLOT = "05:00 PM - 06:00 PM"


def _evening_slots():
    return [
        {"start_time": "17:00", "end_time": "18:00", "display_label": "05:00 PM - 06:00 PM"},
        {"start_time": "18:00", "end_time": "19:00", "display_label": "06:00 PM - 07:00 PM"},
    ]


@pytest.fixture
def gomoti_schedule() -> HospitalSchedule:
    """Gomoti with capacity 3 per slot."""
    return HospitalSchedule(
        hospital_id="gomoti",
        hospital_name="Gomoti Hospital",
        aliases=["gomoti hospital"],
        doctor_name="Dr. Helal",
        capacity_per_slot=3,
        advance_booking_days=60,
        slots_per_day={
            "monday": _evening_slots(),
            "wednesday": _evening_slots(),
            "thursday": _evening_slots(),
            "saturday": _evening_slots(),
        }
    )


@pytest.fixture
def tiny_schedule() -> HospitalSchedule:
    """Single-seat clinic for contention tests."""
    return HospitalSchedule(
        hospital_id="tiny-clinic",
        hospital_name="Tiny Clinic",
        capacity_per_slot=1,
        advance_booking_days=30,
        slots_per_day={
            day: [{"start_time": "09:00", "end_time": "10:00"}]
            for day in ["monday", "tuesday", "wednesday", "thursday", "saturday", "sunday"]
        }
    )


@pytest.fixture
def catalog(gomoti_schedule, tiny_schedule) -> ScheduleCatalog:
    return ScheduleCatalog([gomoti_schedule, tiny_schedule], closure_weekday="friday")


@pytest.fixture
def ledger(tmp_path):
    """File-backed SQLite ledger so threads get their own connections."""
    ledger = BookingLedger(database_url=f"sqlite:///{tmp_path / 'ledger.db'}")
    yield ledger
    ledger.close()


@pytest.fixture
def availability_cache() -> AvailabilityCache:
    return AvailabilityCache(ttl=300)


@pytest.fixture
def manager(catalog, ledger, availability_cache) -> BookingTransactionManager:
    return BookingTransactionManager(
        catalog, ledger, cache=availability_cache, today=lambda: TODAY
    )


@pytest.fixture
def calculator(catalog, ledger, availability_cache) -> AvailabilityCalculator:
    return AvailabilityCalculator(catalog, ledger, availability_cache)


@pytest.fixture
def aggregator(calculator) -> CalendarAggregator:
    return CalendarAggregator(calculator, today=lambda: TODAY)


@pytest.fixture
def patient() -> PatientDetails:
    return PatientDetails(
        name="Rahim Uddin",
        email="rahim@example.com",
        phone="+8801712345678",
        age=34,
        gender="male",
        symptoms="Chest pain"
    )


@pytest.fixture
def client(catalog, ledger, availability_cache):
    """FastAPI test client wired to the test catalog and ledger."""
    from fastapi.testclient import TestClient

    from clinic_booking.api.dependencies import (
        get_availability_cache,
        get_catalog,
        get_ledger,
        get_rate_limiter,
        get_today_provider,
    )
    from clinic_booking.api_server import app
    from clinic_booking.rate_limiter import RateLimiter

    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_availability_cache] = lambda: availability_cache
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(max_requests=1000, window_seconds=900)
    app.dependency_overrides[get_today_provider] = lambda: (lambda: TODAY)

    yield TestClient(app)

    app.dependency_overrides.clear()
