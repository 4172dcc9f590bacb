"""Input validation utilities for identities, credentials and free text."""

import re


class CitizenIdValidator:
    """Validate a 13-digit national citizen id."""

    PATTERN = re.compile(r"^\d{13}$")

    @classmethod
    def validate(cls, citizen_id: str | None) -> tuple[bool, str | None]:
        """
        Validate citizen id format.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not citizen_id:
            return False, "Citizen ID is required"

        if not cls.PATTERN.match(citizen_id):
            return False, "Citizen ID must be exactly 13 digits"

        return True, None


class PasswordValidator:
    """Validate password strength for official accounts."""

    MIN_LENGTH = 8
    MAX_LENGTH = 128

    @classmethod
    def validate(cls, password: str) -> tuple[bool, str | None]:
        """
        Validate password strength.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if len(password) < cls.MIN_LENGTH:
            return False, f"Password must be at least {cls.MIN_LENGTH} characters long"

        if len(password) > cls.MAX_LENGTH:
            return False, f"Password must not exceed {cls.MAX_LENGTH} characters"

        if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
            return False, "Password must contain both letters and digits"

        return True, None


class EmailValidator:
    """Loose e-mail shape check; delivery is never attempted."""

    PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @classmethod
    def validate(cls, email: str) -> tuple[bool, str | None]:
        if not cls.PATTERN.match(email):
            return False, "Invalid email address"
        return True, None


HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Sanitize string input: truncate, drop null bytes, strip whitespace.

    Args:
        value: String to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not value:
        return ""

    value = value[:max_length]
    value = value.replace("\x00", "")
    return value.strip()
