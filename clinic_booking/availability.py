"""
Availability calculation from live booking counts.

Every view is recomputed from the ledger on each call. The single and bulk
paths share one evaluation routine, so a bulk result is identical slot by
slot to the individual checks.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from clinic_booking.cache import AvailabilityCache
from clinic_booking.dates import parse_calendar_date, weekday_name
from clinic_booking.errors import HospitalNotFound
from clinic_booking.ledger import BookingLedger
from clinic_booking.logging_config import get_logger
from clinic_booking.schedule_catalog import ScheduleCatalog
from clinic_booking.schedule_config import HospitalSchedule, SlotDefinition

logger = get_logger(__name__)

DateLike = Union[str, date]
SlotRequest = Tuple[DateLike, str]


class AvailabilityStatus:
    AVAILABLE = "available"
    FULL = "full"
    CLOSED = "closed"
    NOT_FOUND = "not_found"
    INVALID_SLOT = "invalid_slot"


@dataclass
class AvailabilityView:
    """Derived capacity state of one (hospital, date, slot)."""
    hospital_id: str
    date: date
    time_slot: str
    slot_id: Optional[str]
    capacity: int
    current_bookings: int
    remaining: int
    is_available: bool
    status: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hospital_id": self.hospital_id,
            "date": self.date.isoformat(),
            "time_slot": self.time_slot,
            "slot_id": self.slot_id,
            "capacity": self.capacity,
            "current_bookings": self.current_bookings,
            "remaining": self.remaining,
            "is_available": self.is_available,
            "status": self.status,
            "reason": self.reason,
        }


@dataclass
class DayAvailability:
    """Every slot of one day with live counts."""
    hospital_id: str
    hospital_name: str
    date: date
    is_closed: bool
    reason: Optional[str] = None
    slots: List[AvailabilityView] = field(default_factory=list)


def _unavailable(
    hospital_id: str,
    day: date,
    time_slot: str,
    status: str,
    reason: str
) -> AvailabilityView:
    return AvailabilityView(
        hospital_id=hospital_id,
        date=day,
        time_slot=time_slot,
        slot_id=None,
        capacity=0,
        current_bookings=0,
        remaining=0,
        is_available=False,
        status=status,
        reason=reason,
    )


def _slot_view(
    schedule: HospitalSchedule,
    day: date,
    slot: SlotDefinition,
    count: int
) -> AvailabilityView:
    capacity = schedule.capacity_per_slot
    remaining = max(0, capacity - count)
    return AvailabilityView(
        hospital_id=schedule.hospital_id,
        date=day,
        time_slot=slot.display_label,
        slot_id=slot.slot_id,
        capacity=capacity,
        current_bookings=count,
        remaining=remaining,
        is_available=remaining > 0,
        status=AvailabilityStatus.AVAILABLE if remaining > 0 else AvailabilityStatus.FULL,
        reason=None if remaining > 0 else "Slot is fully booked",
    )


class AvailabilityCalculator:
    """
    Answers "can this slot take one more booking?" for reads.

    Pattern: Catalog for capacity, ledger for live counts. The optional cache
    is only used when a caller asks for it (calendar views).
    """

    def __init__(
        self,
        catalog: ScheduleCatalog,
        ledger: BookingLedger,
        cache: Optional[AvailabilityCache] = None
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.cache = cache

    def _resolve(
        self,
        schedule: HospitalSchedule,
        day: date,
        time_slot: str
    ) -> Tuple[Optional[SlotDefinition], Optional[AvailabilityView]]:
        """Resolve a slot, or build the unavailable view explaining why not."""
        reason = self.catalog.closure_reason(schedule, day)
        if reason:
            return None, _unavailable(
                schedule.hospital_id, day, time_slot, AvailabilityStatus.CLOSED, reason
            )

        for slot in schedule.slots_for(weekday_name(day)):
            if slot.matches(time_slot):
                return slot, None

        return None, _unavailable(
            schedule.hospital_id,
            day,
            time_slot,
            AvailabilityStatus.INVALID_SLOT,
            f"'{time_slot}' is not a time slot of {schedule.hospital_name} on {day.isoformat()}"
        )

    def check_availability(
        self,
        hospital_ref: str,
        day: DateLike,
        time_slot: str
    ) -> AvailabilityView:
        """
        Availability of one slot.

        Args:
            hospital_ref: Hospital id, name or alias
            day: Calendar date (date or YYYY-MM-DD)
            time_slot: Display label, start time or slot_id

        Returns:
            AvailabilityView; unknown hospitals, closed days and unknown slots
            come back as unavailable views rather than exceptions

        Raises:
            ValidationError: If ``day`` is not a valid date
        """
        day = parse_calendar_date(day)
        try:
            schedule = self.catalog.get_schedule(hospital_ref)
        except HospitalNotFound:
            return _unavailable(
                hospital_ref, day, time_slot, AvailabilityStatus.NOT_FOUND, "hospital not found"
            )

        slot, view = self._resolve(schedule, day, time_slot)
        if view:
            return view

        count = self.ledger.count_active_bookings(schedule.hospital_id, day, slot.slot_id)
        return _slot_view(schedule, day, slot, count)

    def check_bulk_availability(
        self,
        hospital_ref: str,
        requests: Sequence[SlotRequest],
        use_cache: bool = False
    ) -> List[AvailabilityView]:
        """
        Availability of many (date, time_slot) pairs of one hospital.

        Runs one grouped count query over the inclusive date bounds of the
        request; pairs without bookings report zero. Output order matches
        input order.

        Args:
            hospital_ref: Hospital id, name or alias
            requests: (date, time_slot) pairs
            use_cache: Serve counts from the availability cache when possible
        """
        days = [parse_calendar_date(day) for day, _ in requests]
        try:
            schedule = self.catalog.get_schedule(hospital_ref)
        except HospitalNotFound:
            return [
                _unavailable(hospital_ref, day, time_slot, AvailabilityStatus.NOT_FOUND,
                             "hospital not found")
                for day, (_, time_slot) in zip(days, requests)
            ]

        resolved = [
            self._resolve(schedule, day, time_slot)
            for day, (_, time_slot) in zip(days, requests)
        ]

        bookable_days = [day for day, (slot, _) in zip(days, resolved) if slot]
        counts = {}
        if bookable_days:
            counts = self._range_counts(
                schedule.hospital_id, min(bookable_days), max(bookable_days), use_cache
            )

        views = []
        for day, (slot, view) in zip(days, resolved):
            if view:
                views.append(view)
            else:
                views.append(_slot_view(schedule, day, slot, counts.get((day, slot.slot_id), 0)))
        return views

    def day_availability(self, hospital_ref: str, day: DateLike) -> DayAvailability:
        """
        Every slot of a day with live availability.

        Raises:
            HospitalNotFound: Unknown hospital
            ValidationError: Invalid date
        """
        day = parse_calendar_date(day)
        schedule = self.catalog.get_schedule(hospital_ref)

        reason = self.catalog.closure_reason(schedule, day)
        if reason:
            return DayAvailability(
                hospital_id=schedule.hospital_id,
                hospital_name=schedule.hospital_name,
                date=day,
                is_closed=True,
                reason=reason,
            )

        slots = self.catalog.get_slots_for_day(schedule.hospital_id, day)
        views = self.check_bulk_availability(
            schedule.hospital_id, [(day, slot.slot_id) for slot in slots]
        )
        return DayAvailability(
            hospital_id=schedule.hospital_id,
            hospital_name=schedule.hospital_name,
            date=day,
            is_closed=False,
            slots=views,
        )

    def _range_counts(
        self,
        hospital_id: str,
        start: date,
        end: date,
        use_cache: bool
    ) -> Dict[Tuple[date, str], int]:
        if not use_cache or self.cache is None:
            return self.ledger.count_by_slot(hospital_id, start, end)

        cached = self.cache.get(hospital_id, start, end)
        if cached is not None:
            logger.debug("availability_cache_hit", hospital_id=hospital_id,
                         start=start.isoformat(), end=end.isoformat())
            return cached

        # Taken before the read so a booking committed meanwhile keeps
        # these counts out of the cache
        generation = self.cache.generation(hospital_id)
        counts = self.ledger.count_by_slot(hospital_id, start, end)
        if not self.cache.set(hospital_id, start, end, counts, generation=generation):
            logger.debug("availability_cache_skip_stale", hospital_id=hospital_id)
        return counts
