"""Calendar summaries over a range of days."""
from dataclasses import dataclass, asdict
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union

from clinic_booking import config
from clinic_booking.availability import AvailabilityCalculator
from clinic_booking.dates import date_range, parse_calendar_date, weekday_name
from clinic_booking.errors import ValidationError


@dataclass
class DaySummary:
    date: date
    day_name: str
    is_past: bool
    is_closed: bool
    total_slots: int
    total_capacity: int
    used_capacity: int
    available_capacity: int
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


class CalendarAggregator:
    """
    Builds per-day capacity summaries for a hospital.

    Pattern: One bulk availability call (one grouped count query) for the
    whole range. Counts may come from the availability cache.
    """

    def __init__(
        self,
        calculator: AvailabilityCalculator,
        today: Callable[[], date] = date.today,
        max_days: int = config.CALENDAR_MAX_DAYS
    ):
        self.calculator = calculator
        self.catalog = calculator.catalog
        self.today = today
        self.max_days = max_days

    def build_calendar(
        self,
        hospital_ref: str,
        start_date: Union[str, date, None] = None,
        num_days: int = config.CALENDAR_DEFAULT_DAYS
    ) -> List[DaySummary]:
        """
        Summaries for ``num_days`` consecutive days.

        Args:
            hospital_ref: Hospital id, name or alias
            start_date: First day (default: today)
            num_days: Number of days, 1..CALENDAR_MAX_DAYS

        Raises:
            HospitalNotFound: Unknown hospital
            ValidationError: Invalid start date or day count
        """
        if not 1 <= num_days <= self.max_days:
            raise ValidationError(f"days must be between 1 and {self.max_days}")

        schedule = self.catalog.get_schedule(hospital_ref)
        today = self.today()
        start = parse_calendar_date(start_date) if start_date else today
        days = list(date_range(start, num_days))

        requests = []
        for day in days:
            if self.catalog.closure_reason(schedule, day) is None:
                requests.extend(
                    (day, slot.slot_id) for slot in schedule.slots_for(weekday_name(day))
                )

        views = self.calculator.check_bulk_availability(
            schedule.hospital_id, requests, use_cache=True
        )
        views_by_day: Dict[date, list] = {}
        for view in views:
            views_by_day.setdefault(view.date, []).append(view)

        summaries = []
        for day in days:
            day_views = views_by_day.get(day, [])
            total_capacity = sum(view.capacity for view in day_views)
            used_capacity = sum(view.current_bookings for view in day_views)
            summaries.append(DaySummary(
                date=day,
                day_name=weekday_name(day).capitalize(),
                is_past=day < today,
                is_closed=not day_views,
                total_slots=len(day_views),
                total_capacity=total_capacity,
                used_capacity=used_capacity,
                available_capacity=sum(view.remaining for view in day_views),
                reason=self.catalog.closure_reason(schedule, day),
            ))
        return summaries
