"""Appointment reference numbers.

Format: AYYXXXXX (8 characters)
- A: appointment
- YY: 2-digit year
- XXXXX: random base36 string from a cryptographic RNG
"""
import re
import secrets
from datetime import date
from typing import Optional

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
RANDOM_LENGTH = 5
REFERENCE_PATTERN = re.compile(r"^A\d{2}[0-9A-Z]{5}$")


def generate_reference_number(today: Optional[date] = None) -> str:
    """Generate a short, collision-resistant appointment reference."""
    year = (today or date.today()).strftime("%y")
    random_part = "".join(
        secrets.choice(BASE36_ALPHABET) for _ in range(RANDOM_LENGTH)
    )
    return f"A{year}{random_part}"


def is_valid_reference(reference_number: str) -> bool:
    """Check reference number format."""
    return bool(REFERENCE_PATTERN.match(reference_number or ""))
