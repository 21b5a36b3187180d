"""Test appointment reference numbers."""
from datetime import date

from clinic_booking.reference import generate_reference_number, is_valid_reference


def test_reference_format():
    ref = generate_reference_number(date(2025, 9, 8))

    assert len(ref) == 8
    assert ref.startswith("A25")
    assert is_valid_reference(ref)


def test_references_are_unique_enough():
    refs = {generate_reference_number(date(2025, 9, 8)) for _ in range(200)}
    assert len(refs) > 195


def test_is_valid_reference_rejects_bad_values():
    assert not is_valid_reference("B25ABCDE")
    assert not is_valid_reference("A25abcde")
    assert not is_valid_reference("A25ABCD")
    assert not is_valid_reference("")
