"""
Schedule catalog: read-only lookup of hospital schedules.

Handles:
- Loading one JSON schedule file per hospital
- Resolving hospital references (id, name, alias; case-insensitive)
- Listing the slots of a calendar date, or why the hospital is closed
- Resolving a requested time (label, start time or slot_id) to a slot
"""
import json
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from clinic_booking import config
from clinic_booking.dates import normalize_weekday, weekday_name
from clinic_booking.errors import HospitalClosed, HospitalNotFound, InvalidTimeSlot
from clinic_booking.logging_config import get_logger
from clinic_booking.schedule_config import HospitalSchedule, SlotDefinition

logger = get_logger(__name__)


class ScheduleConfigError(Exception):
    """Raised when a schedule file is missing, malformed or breaks a catalog rule."""
    pass


class ScheduleCatalog:
    """Immutable set of hospital schedules, loaded once at startup."""

    def __init__(
        self,
        schedules: Iterable[HospitalSchedule],
        closure_weekday: Optional[str] = config.CLOSURE_WEEKDAY
    ):
        """
        Build a catalog from already-parsed schedules.

        Args:
            schedules: Hospital schedules (inactive ones are skipped)
            closure_weekday: Weekday on which every hospital is closed, or None

        Raises:
            ScheduleConfigError: Duplicate hospital ids, or a hospital that
                operates on the closure weekday
        """
        self.closure_weekday = normalize_weekday(closure_weekday) if closure_weekday else None
        self._schedules: Dict[str, HospitalSchedule] = {}

        for schedule in schedules:
            if not schedule.is_active:
                continue
            if schedule.hospital_id in self._schedules:
                raise ScheduleConfigError(
                    f"Duplicate schedule for hospital: {schedule.hospital_id}"
                )
            if self.closure_weekday and self.closure_weekday in schedule.slots_per_day:
                raise ScheduleConfigError(
                    f"{schedule.hospital_name} has slots on {self.closure_weekday}, "
                    f"which is the weekly closure day"
                )
            self._schedules[schedule.hospital_id] = schedule

    @classmethod
    def from_directory(
        cls,
        config_dir: Union[str, Path, None] = None,
        closure_weekday: Optional[str] = config.CLOSURE_WEEKDAY
    ) -> "ScheduleCatalog":
        """
        Load every ``*.json`` schedule file in a directory.

        Args:
            config_dir: Directory of schedule files. Defaults to HOSPITAL_CONFIG_DIR.
            closure_weekday: Weekly closure day shared by all hospitals

        Raises:
            ScheduleConfigError: Directory missing or a file fails validation
        """
        directory = Path(config_dir or config.HOSPITAL_CONFIG_DIR)
        if not directory.is_dir():
            raise ScheduleConfigError(f"Schedule directory not found: {directory}")

        schedules = []
        for file_path in sorted(directory.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                schedules.append(HospitalSchedule(**data))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                raise ScheduleConfigError(f"Invalid schedule file {file_path.name}: {e}") from e

        catalog = cls(schedules, closure_weekday=closure_weekday)
        logger.info(
            "schedule_catalog_loaded",
            directory=str(directory),
            hospitals=catalog.hospital_ids()
        )
        return catalog

    def hospital_ids(self) -> List[str]:
        """Canonical ids of all active hospitals, sorted."""
        return sorted(self._schedules)

    def list_schedules(self) -> List[HospitalSchedule]:
        """All active schedules ordered by hospital name."""
        return sorted(self._schedules.values(), key=lambda s: s.hospital_name)

    def get_schedule(self, hospital_ref: str) -> HospitalSchedule:
        """
        Resolve a hospital reference to its schedule.

        Args:
            hospital_ref: Hospital id, display name or alias (any case)

        Raises:
            HospitalNotFound: If no active hospital matches
        """
        if hospital_ref in self._schedules:
            return self._schedules[hospital_ref]

        for schedule in self._schedules.values():
            if schedule.matches(hospital_ref):
                return schedule

        raise HospitalNotFound(f"Hospital '{hospital_ref}' not found")

    def operating_days(self, hospital_ref: str) -> List[str]:
        """Weekdays on which the hospital has slots, Monday first."""
        return self.get_schedule(hospital_ref).operating_days

    def closure_reason(self, schedule: HospitalSchedule, day: date) -> Optional[str]:
        """Human reason the hospital is closed on ``day``, or None if open."""
        weekday = weekday_name(day)
        if weekday == self.closure_weekday or weekday not in schedule.slots_per_day:
            return f"{schedule.hospital_name} is closed on {weekday.capitalize()}s"
        return None

    def get_slots_for_day(self, hospital_ref: str, day: date) -> List[SlotDefinition]:
        """
        Ordered slots of a hospital on a calendar date.

        Raises:
            HospitalNotFound: Unknown hospital
            HospitalClosed: The hospital does not operate on that weekday
        """
        schedule = self.get_schedule(hospital_ref)
        reason = self.closure_reason(schedule, day)
        if reason:
            raise HospitalClosed(reason)
        return schedule.slots_for(weekday_name(day))

    def resolve_slot(self, hospital_ref: str, day: date, time_ref: str) -> SlotDefinition:
        """
        Find the slot of ``day`` named by ``time_ref``.

        Raises:
            HospitalNotFound, HospitalClosed, InvalidTimeSlot
        """
        schedule = self.get_schedule(hospital_ref)
        for slot in self.get_slots_for_day(schedule.hospital_id, day):
            if slot.matches(time_ref):
                return slot

        raise InvalidTimeSlot(
            f"'{time_ref}' is not a time slot of {schedule.hospital_name} "
            f"on {day.isoformat()}"
        )
