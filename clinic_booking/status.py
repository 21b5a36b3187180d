"""Appointment status machine.

- Use Enums for discrete states
- Cancelled bookings stop counting toward slot capacity immediately
  (capacity counts always filter status != cancelled)
"""
from enum import Enum
from typing import Dict, FrozenSet, List


class BookingStatus(str, Enum):
    """Lifecycle states of a booking."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# Current status -> [allowed next statuses]
VALID_TRANSITIONS: Dict[BookingStatus, List[BookingStatus]] = {
    BookingStatus.PENDING: [
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    ],
    BookingStatus.CONFIRMED: [
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    ],
    BookingStatus.COMPLETED: [],
    BookingStatus.CANCELLED: [],
    BookingStatus.NO_SHOW: [],
}

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    status for status, allowed in VALID_TRANSITIONS.items() if not allowed
)


def validate_transition(current: BookingStatus, intended: BookingStatus) -> bool:
    """
    Validate status transition.

    Prevents:
    - Re-opening terminal bookings (a cancelled booking never takes capacity back)
    - Skipping confirmation (pending -> completed)

    Example:
        >>> validate_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED)
        True
    """
    return intended in VALID_TRANSITIONS.get(BookingStatus(current), [])
