"""Input sanitization for patient-supplied text."""
import re
from typing import Optional


class InputSanitizer:
    """
    Sanitizes free text before it is stored with an appointment.

    Protections:
    - XSS: Remove HTML/JavaScript
    - SQL Injection: Already handled by SQLAlchemy parameterized queries
    - Length limits: Enforced by Pydantic models
    """

    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
    SCRIPT_PATTERN = re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL)
    JAVASCRIPT_PATTERN = re.compile(r'javascript:', re.IGNORECASE)
    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
    PHONE_PATTERN = re.compile(r'^\+?[0-9\s\-()]{7,20}$')

    @staticmethod
    def sanitize_text(value: Optional[str]) -> Optional[str]:
        """
        Remove script blocks, HTML tags and stray angle brackets, then
        normalize whitespace.

        Args:
            value: Raw patient input

        Returns:
            Sanitized text (None stays None)
        """
        if not value:
            return value

        value = InputSanitizer.SCRIPT_PATTERN.sub('', value)
        value = InputSanitizer.JAVASCRIPT_PATTERN.sub('', value)
        value = InputSanitizer.HTML_TAG_PATTERN.sub('', value)
        value = value.replace('<', '').replace('>', '')

        return ' '.join(value.split())

    @staticmethod
    def sanitize_email(email: str) -> str:
        """
        Validate an email address and lowercase it.

        Raises:
            ValueError: If the email is not valid
        """
        email = email.strip().lower()
        if not InputSanitizer.EMAIL_PATTERN.match(email):
            raise ValueError(
                f"Invalid email: '{email}'. Please provide a valid email (e.g., name@example.com)."
            )
        return email

    @staticmethod
    def sanitize_phone(phone: str) -> str:
        """
        Validate a phone number and collapse its whitespace.

        Raises:
            ValueError: If the phone number has invalid characters or length
        """
        phone = ' '.join(phone.split())
        if not InputSanitizer.PHONE_PATTERN.match(phone):
            raise ValueError(
                f"Invalid phone number: '{phone}'. Use digits, spaces, '+', '-' or parentheses."
            )
        return phone
