"""Test the HTTP API end to end against a SQLite ledger."""
import pytest

from clinic_booking.api.dependencies import get_rate_limiter
from clinic_booking.api_server import app
from clinic_booking.rate_limiter import RateLimiter

from conftest import EVENING_SLOT


def booking_payload(**overrides):
    payload = {
        "hospital": "gomoti",
        "date": "2025-09-10",
        "appointment_time": EVENING_SLOT,
        "patient_name": "Rahim Uddin",
        "patient_email": "rahim@example.com",
        "patient_phone": "+8801712345678",
        "patient_age": 34,
        "gender": "male",
        "symptoms": "Chest pain",
    }
    payload.update(overrides)
    return payload


def test_health_and_root(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["docs"] == "/docs"


def test_responses_carry_request_id(client):
    response = client.get("/health")
    assert response.headers["X-Request-ID"].startswith("req-")


def test_create_appointment_returns_201_with_slot_info(client):
    response = client.post("/api/appointments", json=booking_payload())

    assert response.status_code == 201
    data = response.json()
    assert data["appointment"]["hospital_id"] == "gomoti"
    assert data["appointment"]["slot_id"] == "gomoti:wednesday:1700"
    assert data["appointment"]["status"] == "pending"
    assert data["slot_info"] == {"current_bookings": 1, "max_capacity": 3, "remaining_slots": 2}
    assert data["appointment"]["patient_address"] is None


def test_create_appointment_stores_patient_address(client):
    response = client.post(
        "/api/appointments", json=booking_payload(patient_address="Kandirpar, Cumilla")
    )

    appointment_id = response.json()["appointment"]["id"]
    stored = client.get(f"/api/appointments/{appointment_id}").json()
    assert stored["patient_address"] == "Kandirpar, Cumilla"


def test_create_appointment_accepts_appointment_date_and_hospital_name(client):
    payload = booking_payload(hospital="Gomoti Hospital")
    payload["appointment_date"] = payload.pop("date")

    response = client.post("/api/appointments", json=payload)

    assert response.status_code == 201
    assert response.json()["appointment"]["hospital_id"] == "gomoti"


def test_full_slot_returns_409_with_counts(client):
    for _ in range(3):
        assert client.post("/api/appointments", json=booking_payload()).status_code == 201

    response = client.post("/api/appointments", json=booking_payload())

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "CAPACITY_EXCEEDED"
    assert data["current_bookings"] == 3
    assert data["max_capacity"] == 3


def test_closed_day_returns_400(client):
    response = client.post("/api/appointments", json=booking_payload(date="2025-09-12"))

    assert response.status_code == 400
    assert response.json()["code"] == "HOSPITAL_CLOSED"
    assert response.json()["detail"] == "Gomoti Hospital is closed on Fridays"


@pytest.mark.parametrize("overrides,code", [
    ({"date": "2025-09-03"}, "VALIDATION_ERROR"),
    ({"date": "2025-13-01"}, "VALIDATION_ERROR"),
    ({"appointment_time": "09:00 AM - 10:00 AM"}, "INVALID_TIME_SLOT"),
])
def test_validation_errors_return_400(client, overrides, code):
    response = client.post("/api/appointments", json=booking_payload(**overrides))

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_unknown_hospital_returns_404(client):
    response = client.post("/api/appointments", json=booking_payload(hospital="Nowhere"))

    assert response.status_code == 404
    assert response.json()["code"] == "HOSPITAL_NOT_FOUND"


def test_invalid_body_returns_422(client):
    response = client.post("/api/appointments", json=booking_payload(patient_email="nope"))

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_rate_limited_booking_returns_429(client):
    limiter = RateLimiter(max_requests=1, window_seconds=900)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    assert client.post("/api/appointments", json=booking_payload()).status_code == 201
    response = client.post("/api/appointments", json=booking_payload())

    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert int(response.headers["Retry-After"]) > 0


def test_slot_availability_endpoint(client):
    client.post("/api/appointments", json=booking_payload())

    response = client.get(f"/api/availability/gomoti/2025-09-10/{EVENING_SLOT}")

    assert response.status_code == 200
    data = response.json()
    assert data["time"] == EVENING_SLOT
    assert data["max_capacity"] == 3
    assert data["current_bookings"] == 1
    assert data["available_slots"] == 2
    assert data["is_available"] is True
    assert "last_updated" in data


def test_slot_availability_closed_and_unknown(client):
    closed = client.get("/api/availability/gomoti/2025-09-12/17:00").json()
    assert closed["status"] == "closed"
    assert closed["is_available"] is False

    unknown = client.get("/api/availability/nowhere/2025-09-10/17:00").json()
    assert unknown["status"] == "not_found"
    assert unknown["max_capacity"] == 0


def test_day_availability_endpoint(client):
    response = client.get("/api/availability/gomoti/2025-09-10")

    assert response.status_code == 200
    assert [s["time"] for s in response.json()["slots"]] == [
        "05:00 PM - 06:00 PM",
        "06:00 PM - 07:00 PM",
    ]


def test_bulk_availability_endpoint(client):
    client.post("/api/appointments", json=booking_payload())

    response = client.post("/api/availability/bulk", json={
        "hospital_id": "Gomoti Hospital",
        "date_time_slots": [
            {"date": "2025-09-10", "time": EVENING_SLOT},
            {"date": "2025-09-11", "time": "17:00"},
            {"date": "2025-09-12", "time": "17:00"},
        ]
    })

    assert response.status_code == 200
    data = response.json()
    assert data["hospital_id"] == "gomoti"
    assert [s["current_bookings"] for s in data["slots"]] == [1, 0, 0]
    assert [s["status"] for s in data["slots"]] == ["available", "available", "closed"]


def test_bulk_availability_rejects_too_many_entries(client):
    response = client.post("/api/availability/bulk", json={
        "hospital_id": "gomoti",
        "date_time_slots": [{"date": "2025-09-10", "time": "17:00"}] * 101
    })
    assert response.status_code == 422


def test_calendar_endpoint(client):
    client.post("/api/appointments", json=booking_payload())

    response = client.get("/api/calendar/gomoti", params={"days": 7})

    assert response.status_code == 200
    data = response.json()
    assert data["start_date"] == "2025-09-08"
    assert len(data["calendar"]) == 7
    wednesday = data["calendar"][2]
    assert wednesday["used_capacity"] == 1
    assert wednesday["available_capacity"] == 5
    assert data["calendar"][4]["is_closed"] is True


def test_calendar_rejects_bad_day_count(client):
    assert client.get("/api/calendar/gomoti", params={"days": 0}).status_code == 400
    assert client.get("/api/calendar/nowhere").status_code == 404


def test_track_appointment_hides_contact_details(client):
    created = client.post("/api/appointments", json=booking_payload()).json()
    reference = created["appointment"]["reference_number"]

    response = client.get(f"/api/appointments/track/{reference}")

    assert response.status_code == 200
    data = response.json()
    assert data["reference_number"] == reference
    assert "patient_email" not in data
    assert "patient_phone" not in data

    assert client.get("/api/appointments/track/A25ZZZZZ").status_code == 404


def test_admin_status_update_and_cancellation_frees_capacity(client):
    ids = [
        client.post("/api/appointments", json=booking_payload()).json()["appointment"]["id"]
        for _ in range(3)
    ]

    confirmed = client.put(f"/api/appointments/{ids[0]}", json={"status": "confirmed"})
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    cancelled = client.put(f"/api/appointments/{ids[1]}", json={"status": "cancelled"})
    assert cancelled.json()["status"] == "cancelled"

    availability = client.get("/api/availability/gomoti/2025-09-10/17:00").json()
    assert availability["current_bookings"] == 2

    reopened = client.put(f"/api/appointments/{ids[1]}", json={"status": "pending"})
    assert reopened.status_code == 400
    assert reopened.json()["code"] == "INVALID_STATUS_TRANSITION"


def test_admin_update_requires_a_change(client):
    appointment_id = client.post("/api/appointments", json=booking_payload()).json()["appointment"]["id"]
    assert client.put(f"/api/appointments/{appointment_id}", json={}).status_code == 400


def test_admin_list_get_delete_and_stats(client):
    appointment_id = client.post("/api/appointments", json=booking_payload()).json()["appointment"]["id"]
    client.post("/api/appointments", json=booking_payload(date="2025-09-11", appointment_time="17:00"))

    listing = client.get("/api/appointments", params={"date": "2025-09-10"}).json()
    assert listing["count"] == 1
    assert listing["appointments"][0]["id"] == appointment_id

    by_hospital_name = client.get("/api/appointments", params={"hospital_id": "Gomoti Hospital"}).json()
    assert by_hospital_name["count"] == 2

    assert client.get(f"/api/appointments/{appointment_id}").json()["id"] == appointment_id

    stats = client.get("/api/appointments/stats/overview").json()
    assert stats["total_appointments"] == 2
    assert stats["upcoming_appointments"] == 2
    assert stats["pending_appointments"] == 2

    assert client.delete(f"/api/appointments/{appointment_id}").status_code == 200
    assert client.get(f"/api/appointments/{appointment_id}").status_code == 404


def test_hospital_schedule_endpoints(client):
    schedules = client.get("/api/hospital-schedules").json()
    assert [s["hospital_id"] for s in schedules] == ["gomoti", "tiny-clinic"]

    gomoti = client.get("/api/hospital-schedules/Gomoti Hospital").json()
    assert gomoti["operating_days"] == ["monday", "wednesday", "thursday", "saturday"]
    assert gomoti["slots_per_day"]["monday"][0]["slot_id"] == "gomoti:monday:1700"

    days = client.get("/api/hospital-schedules/gomoti/days").json()
    assert days[0] == {"day": "monday", "day_index": 0, "slot_count": 2}

    slots = client.get("/api/hospital-schedules/gomoti/day/wed/slots").json()
    assert slots["day"] == "wednesday"
    assert len(slots["slots"]) == 2

    closed = client.get("/api/hospital-schedules/gomoti/day/4/slots").json()
    assert closed["slots"] == []

    assert client.get("/api/hospital-schedules/gomoti/day/someday/slots").status_code == 400
    assert client.get("/api/hospital-schedules/nowhere").status_code == 404
