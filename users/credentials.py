"""
Password rules for admin-created accounts.
"""

import secrets
from typing import Optional

MIN_PASSWORD_LENGTH = 8
TEMPORARY_PASSWORD_LENGTH = 12

# Ambiguous characters (I, O, l, 0, 1) are left out
UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghijkmnopqrstuvwxyz"
DIGITS = "23456789"
SPECIAL = "!@#$%&*"

_ALL_CHARS = UPPERCASE + LOWERCASE + DIGITS + SPECIAL


def generate_temporary_password(length: int = TEMPORARY_PASSWORD_LENGTH) -> str:
    """
    Generate a random password with at least one upper-case letter,
    lower-case letter, digit and special character.

    Raises:
        ValueError: If length is below MIN_PASSWORD_LENGTH
    """
    if length < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password length must be at least {MIN_PASSWORD_LENGTH} characters")

    chars = [secrets.choice(charset) for charset in (UPPERCASE, LOWERCASE, DIGITS, SPECIAL)]
    chars.extend(secrets.choice(_ALL_CHARS) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)

    return "".join(chars)


def password_error(password) -> Optional[str]:
    """Return the reason a new password is rejected, or None if it is acceptable."""
    if not password or not isinstance(password, str):
        return "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None
