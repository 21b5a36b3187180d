"""Test appointment status transitions."""
import pytest

from clinic_booking.status import TERMINAL_STATUSES, BookingStatus, validate_transition


@pytest.mark.parametrize("current,intended", [
    (BookingStatus.PENDING, BookingStatus.CONFIRMED),
    (BookingStatus.PENDING, BookingStatus.CANCELLED),
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW),
])
def test_allowed_transitions(current, intended):
    assert validate_transition(current, intended) is True


@pytest.mark.parametrize("current,intended", [
    (BookingStatus.PENDING, BookingStatus.COMPLETED),
    (BookingStatus.PENDING, BookingStatus.NO_SHOW),
    (BookingStatus.CANCELLED, BookingStatus.PENDING),
    (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
    (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
])
def test_rejected_transitions(current, intended):
    assert validate_transition(current, intended) is False


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }


def test_validate_transition_accepts_plain_strings():
    assert validate_transition("pending", BookingStatus.CONFIRMED) is True
