"""
Hospital schedule configuration schema.

Supports:
- Per-weekday ordered slot lists (a weekday without slots is closed)
- One capacity value shared by every slot of a hospital
- Advance booking window
- Alternative hospital names used by older clients
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from clinic_booking.dates import TIME_PATTERN, WEEKDAYS, format_time_12h, normalize_weekday


def make_slot_id(hospital_id: str, weekday: str, start_time: str) -> str:
    """Stable machine identifier of a slot: "gomoti:monday:1700"."""
    return f"{hospital_id}:{weekday}:{start_time.replace(':', '')}"


def normalize_label(label: str) -> str:
    """Case- and whitespace-insensitive form of a slot display label."""
    return " ".join(label.split()).upper()


class SlotDefinition(BaseModel):
    """A fixed interval of an operating day."""
    start_time: str = Field(..., description="Start, 24h HH:MM local time")
    end_time: str = Field(..., description="End, 24h HH:MM local time")
    display_label: str = Field(
        default="",
        description="Presentation label, e.g. '05:00 PM - 06:00 PM'"
    )
    slot_id: str = Field(
        default="",
        description="Machine identifier, filled in by the owning schedule"
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "start_time": "17:00",
                "end_time": "18:00",
                "display_label": "05:00 PM - 06:00 PM"
            }
        }
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        if not TIME_PATTERN.match(v):
            raise ValueError(f"Invalid time '{v}'. Use HH:MM (e.g., 17:00)")
        return v

    @model_validator(mode="before")
    @classmethod
    def default_display_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("display_label"):
            start, end = data.get("start_time"), data.get("end_time")
            if isinstance(start, str) and isinstance(end, str) \
                    and TIME_PATTERN.match(start) and TIME_PATTERN.match(end):
                data = {
                    **data,
                    "display_label": f"{format_time_12h(start)} - {format_time_12h(end)}"
                }
        return data

    @model_validator(mode="after")
    def check_end_after_start(self) -> "SlotDefinition":
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Slot end_time {self.end_time} must be after start_time {self.start_time}"
            )
        return self

    def matches(self, time_ref: str) -> bool:
        """True if ``time_ref`` names this slot by label, start time or slot_id."""
        ref = time_ref.strip()
        return (
            ref == self.slot_id
            or ref == self.start_time
            or normalize_label(ref) == normalize_label(self.display_label)
        )


class HospitalSchedule(BaseModel):
    """Complete, immutable schedule of one hospital."""
    hospital_id: str = Field(
        ...,
        min_length=1,
        max_length=50,
        pattern=r"^[a-z0-9_-]+$",
        description="Canonical hospital identifier (e.g., gomoti)"
    )
    hospital_name: str = Field(..., min_length=1, max_length=200)
    aliases: List[str] = Field(
        default_factory=list,
        description="Other names bookings may use for this hospital"
    )
    doctor_name: Optional[str] = Field(None, max_length=200)
    capacity_per_slot: int = Field(..., gt=0, description="Max active bookings per slot")
    advance_booking_days: int = Field(
        default=60,
        ge=0,
        description="How many days ahead patients may book"
    )
    is_active: bool = Field(default=True)
    slots_per_day: Dict[str, List[SlotDefinition]] = Field(
        ...,
        description="Weekday name -> ordered slots; missing weekdays are closed"
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "hospital_id": "gomoti",
                "hospital_name": "Gomoti Hospital",
                "aliases": ["gomoti hospital"],
                "doctor_name": "Dr. Helal",
                "capacity_per_slot": 25,
                "advance_booking_days": 60,
                "slots_per_day": {
                    "monday": [
                        {"start_time": "17:00", "end_time": "18:00"}
                    ]
                }
            }
        }
    )

    @model_validator(mode="before")
    @classmethod
    def assign_slot_ids(cls, data: Any) -> Any:
        """Normalize weekday keys and stamp every slot with its slot_id."""
        if not isinstance(data, dict):
            return data

        hospital_id = data.get("hospital_id")
        raw_days = data.get("slots_per_day")
        if not isinstance(hospital_id, str) or not isinstance(raw_days, dict):
            return data

        slots_per_day = {}
        for day_key, slots in raw_days.items():
            weekday = normalize_weekday(day_key)
            if weekday in slots_per_day:
                raise ValueError(f"Weekday '{weekday}' configured twice")

            stamped = []
            for slot in slots or []:
                if isinstance(slot, SlotDefinition):
                    slot = slot.model_dump()
                if isinstance(slot, dict) and isinstance(slot.get("start_time"), str):
                    slot = {
                        **slot,
                        "slot_id": make_slot_id(hospital_id, weekday, slot["start_time"])
                    }
                stamped.append(slot)
            slots_per_day[weekday] = stamped

        return {**data, "slots_per_day": slots_per_day}

    @field_validator("slots_per_day")
    @classmethod
    def validate_day_slots(cls, v: Dict[str, List[SlotDefinition]]) -> Dict[str, List[SlotDefinition]]:
        """Drop empty days, order slots by start time and reject overlaps."""
        cleaned = {}
        for weekday in WEEKDAYS:
            slots = sorted(v.get(weekday, []), key=lambda s: s.start_time)
            if not slots:
                continue
            for previous, current in zip(slots, slots[1:]):
                if current.start_time < previous.end_time:
                    raise ValueError(
                        f"Overlapping slots on {weekday}: "
                        f"{previous.display_label} / {current.display_label}"
                    )
            cleaned[weekday] = slots

        if not cleaned:
            raise ValueError("At least one operating day with slots is required")
        return cleaned

    @property
    def operating_days(self) -> List[str]:
        """Operating weekdays in Monday-first order."""
        return [day for day in WEEKDAYS if day in self.slots_per_day]

    def slots_for(self, weekday: str) -> List[SlotDefinition]:
        """Slots of a weekday (empty list when closed)."""
        return list(self.slots_per_day.get(weekday, []))

    def matches(self, hospital_ref: str) -> bool:
        """Case-insensitive match on id, display name or any alias."""
        ref = " ".join(hospital_ref.split()).lower()
        names = [self.hospital_id, self.hospital_name, *self.aliases]
        return any(ref == " ".join(name.split()).lower() for name in names)
