"""Test calendar aggregation."""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from clinic_booking.errors import HospitalNotFound, ValidationError

from conftest import EVENING_SLOT, TODAY, WEDNESDAY


def test_week_from_today(aggregator):
    calendar = aggregator.build_calendar("gomoti")

    assert [d.date for d in calendar][0] == TODAY
    assert len(calendar) == 7
    assert [d.day_name for d in calendar] == [
        "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
    ]
    assert [d.is_closed for d in calendar] == [False, True, False, False, True, False, True]


def test_open_day_totals(aggregator, manager, patient):
    manager.attempt_booking("gomoti", WEDNESDAY, EVENING_SLOT, patient)
    manager.attempt_booking("gomoti", WEDNESDAY, "18:00", patient)

    wednesday = aggregator.build_calendar("gomoti", WEDNESDAY, 1)[0]

    assert wednesday.total_slots == 2
    assert wednesday.total_capacity == 6
    assert wednesday.used_capacity == 2
    assert wednesday.available_capacity == 4
    assert wednesday.reason is None


def test_closed_day_summary(aggregator):
    friday = aggregator.build_calendar("gomoti", "2025-09-12", 1)[0]

    assert friday.is_closed is True
    assert friday.total_slots == 0
    assert friday.total_capacity == 0
    assert friday.reason == "Gomoti Hospital is closed on Fridays"


def test_is_past_uses_calendar_days(aggregator):
    calendar = aggregator.build_calendar("gomoti", date(2025, 9, 7), 2)

    assert [d.is_past for d in calendar] == [True, False]


def test_calendar_uses_one_grouped_query(aggregator, ledger, monkeypatch):
    calls = []
    real_count_by_slot = ledger.count_by_slot

    def counting(*args):
        calls.append(args)
        return real_count_by_slot(*args)

    monkeypatch.setattr(ledger, "count_by_slot", counting)

    aggregator.build_calendar("gomoti", TODAY, 14)

    assert len(calls) == 1


def test_calendar_served_from_cache_until_booking(aggregator, ledger, manager, patient, monkeypatch):
    calls = []
    real_count_by_slot = ledger.count_by_slot

    def counting(*args):
        calls.append(args)
        return real_count_by_slot(*args)

    monkeypatch.setattr(ledger, "count_by_slot", counting)

    aggregator.build_calendar("gomoti")
    aggregator.build_calendar("gomoti")
    assert len(calls) == 1

    manager.attempt_booking("gomoti", WEDNESDAY, EVENING_SLOT, patient)
    calendar = aggregator.build_calendar("gomoti")

    assert len(calls) == 2
    assert calendar[2].used_capacity == 1


def test_calendar_read_racing_a_booking_is_not_cached(aggregator, ledger, manager, patient, monkeypatch):
    """Counts read before a concurrent booking's invalidation are not cached."""
    read_done = threading.Event()
    resume = threading.Event()
    real_count_by_slot = ledger.count_by_slot

    def paused_after_read(*args):
        counts = real_count_by_slot(*args)
        read_done.set()
        resume.wait(timeout=5)
        return counts

    monkeypatch.setattr(ledger, "count_by_slot", paused_after_read)

    with ThreadPoolExecutor(max_workers=1) as pool:
        racing_read = pool.submit(aggregator.build_calendar, "gomoti", WEDNESDAY, 1)
        assert read_done.wait(timeout=5)

        manager.attempt_booking("gomoti", WEDNESDAY, EVENING_SLOT, patient)
        resume.set()

        assert racing_read.result(timeout=5)[0].used_capacity == 0

    monkeypatch.setattr(ledger, "count_by_slot", real_count_by_slot)

    assert aggregator.build_calendar("gomoti", WEDNESDAY, 1)[0].used_capacity == 1


@pytest.mark.parametrize("num_days", [0, 61])
def test_days_out_of_range(aggregator, num_days):
    with pytest.raises(ValidationError):
        aggregator.build_calendar("gomoti", TODAY, num_days)


def test_unknown_hospital(aggregator):
    with pytest.raises(HospitalNotFound):
        aggregator.build_calendar("nowhere")


def test_summary_to_dict(aggregator):
    data = aggregator.build_calendar("gomoti", WEDNESDAY, 1)[0].to_dict()
    assert data["date"] == "2025-09-10"
    assert data["day_name"] == "Wednesday"
