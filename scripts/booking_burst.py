"""
Booking burst against a running Clinic Booking API.

Fires N simultaneous POST /api/appointments requests at one slot and checks
that the server never confirms more bookings than the slot's capacity.

Usage:
    python scripts/booking_burst.py 50
    python scripts/booking_burst.py 50 --hospital gomoti --date 2025-09-10 --time 17:00
"""
import argparse
import statistics
import sys
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import requests

from clinic_booking import config


class BurstResults:
    """Container for burst results."""

    def __init__(self, num_requests: int):
        self.num_requests = num_requests
        self.latencies: List[float] = []
        self.status_codes: Counter = Counter()
        self.error_messages: List[str] = []
        self.start_time = None
        self.end_time = None

    @property
    def total_time(self) -> float:
        """Total burst duration in seconds."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return 0.0

    @property
    def created(self) -> int:
        return self.status_codes[201]

    @property
    def refused(self) -> int:
        return self.status_codes[409]

    @property
    def avg_latency(self) -> float:
        """Average latency in milliseconds."""
        if self.latencies:
            return statistics.mean(self.latencies)
        return 0.0

    @property
    def p95_latency(self) -> float:
        """P95 latency in milliseconds."""
        if self.latencies:
            sorted_lat = sorted(self.latencies)
            idx = int(len(sorted_lat) * 0.95)
            return sorted_lat[idx] if idx < len(sorted_lat) else sorted_lat[-1]
        return 0.0


def book_once(
    base_url: str,
    payload: dict,
    barrier: threading.Barrier
) -> Tuple[Optional[int], float, str]:
    """
    Wait for every worker, then send one booking request.

    Returns:
        (status_code or None on connection error, latency_ms, error_message)
    """
    barrier.wait()
    start = time.time()
    try:
        response = requests.post(f"{base_url}/api/appointments", json=payload, timeout=30)
        latency = (time.time() - start) * 1000
        error = "" if response.status_code in (201, 409) else response.text[:200]
        return response.status_code, latency, error
    except requests.RequestException as e:
        return None, (time.time() - start) * 1000, str(e)


def run_burst(base_url: str, num_requests: int, hospital: str, day: str, time_slot: str) -> BurstResults:
    results = BurstResults(num_requests)
    barrier = threading.Barrier(num_requests)

    def payload(i: int) -> dict:
        return {
            "hospital": hospital,
            "date": day,
            "appointment_time": time_slot,
            "patient_name": f"Burst Patient {i}",
            "patient_email": f"burst{i}@example.com",
            "patient_phone": f"+88017{i:08d}",
            "patient_age": 30,
            "gender": "other",
        }

    results.start_time = time.time()
    with ThreadPoolExecutor(max_workers=num_requests) as pool:
        futures = [
            pool.submit(book_once, base_url, payload(i), barrier)
            for i in range(num_requests)
        ]
        outcomes = [future.result() for future in futures]
    results.end_time = time.time()

    for i, (status_code, latency, error) in enumerate(outcomes):
        results.status_codes[status_code] += 1
        results.latencies.append(latency)
        if error:
            results.error_messages.append(f"Request {i}: {error}")

    return results


def slot_capacity(base_url: str, hospital: str, day: str, time_slot: str) -> dict:
    response = requests.get(
        f"{base_url}/api/availability/{hospital}/{day}/{time_slot}",
        timeout=10
    )
    response.raise_for_status()
    return response.json()


def print_results(results: BurstResults, before: dict, after: dict) -> bool:
    """Print burst summary; return True when capacity held."""
    print(f"\n{'=' * 70}")
    print("BOOKING BURST RESULTS")
    print(f"{'=' * 70}")
    print(f"Requests:            {results.num_requests}")
    print(f"Duration:            {results.total_time:.2f}s")
    print(f"Status codes:        {dict(results.status_codes)}")
    print(f"Avg latency:         {results.avg_latency:.0f}ms")
    print(f"P95 latency:         {results.p95_latency:.0f}ms")
    print(f"Bookings before:     {before['current_bookings']} / {before['max_capacity']}")
    print(f"Bookings after:      {after['current_bookings']} / {after['max_capacity']}")

    expected_created = min(results.num_requests, before["available_slots"])
    capacity_held = (
        after["current_bookings"] <= after["max_capacity"]
        and results.created == after["current_bookings"] - before["current_bookings"]
    )

    print(f"Created:             {results.created} (expected {expected_created})")
    print(f"Refused (409):       {results.refused}")
    print(f"Capacity held:       {'yes' if capacity_held else 'NO'}")

    if results.error_messages:
        print("\nUnexpected responses (first 3):")
        for error in results.error_messages[:3]:
            print(f"  - {error[:120]}")

    print(f"{'=' * 70}\n")
    return capacity_held


def main() -> int:
    parser = argparse.ArgumentParser(description="Concurrent booking burst")
    parser.add_argument("requests", type=int, nargs="?", default=30)
    parser.add_argument("--base-url", default=config.API_BASE_URL)
    parser.add_argument("--hospital", default="gomoti")
    parser.add_argument("--date", required=True, help="YYYY-MM-DD, an operating day")
    parser.add_argument("--time", default="17:00", help="Slot label or start time")
    args = parser.parse_args()

    before = slot_capacity(args.base_url, args.hospital, args.date, args.time)
    results = run_burst(args.base_url, args.requests, args.hospital, args.date, args.time)
    after = slot_capacity(args.base_url, args.hospital, args.date, args.time)

    return 0 if print_results(results, before, after) else 1


if __name__ == "__main__":
    sys.exit(main())
