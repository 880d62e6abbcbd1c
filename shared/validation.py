"""
Field validation helpers shared by the route services.
"""

import math
import re
from typing import Any, Optional


class ValidationError(ValueError):
    """Raised when a request field fails validation (HTTP 400)."""
    pass


HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_hex_color(color: Any) -> bool:
    """
    Check that a value is a ``#RGB`` or ``#RRGGBB`` hex color.

    >>> validate_hex_color("#2D2E30")
    True
    >>> validate_hex_color("2D2E30")
    False
    """
    if not color or not isinstance(color, str):
        return False
    return bool(HEX_COLOR_RE.match(color.strip()))


def sanitize_hex_color(color: Any) -> Optional[str]:
    """Trim, validate and upper-case a hex color; None when invalid."""
    if not validate_hex_color(color):
        return None
    return color.strip().upper()


def is_valid_email(email: Any) -> bool:
    if not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip()))


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_number(value: Any) -> bool:
    """True for finite ints and floats. JSON booleans, NaN and Infinity are rejected."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def clean_text(value: Any) -> Optional[str]:
    """Strip a string field and collapse empty values to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_form_bool(value: Optional[str]) -> Optional[bool]:
    """Map multipart ``"true"``/``"false"`` to booleans; anything else is unset."""
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def validate_color_field(value: Any, label: str) -> Optional[str]:
    """
    Validate an optional color field from a request body.

    Empty values clear the color. Anything else must be a valid hex color.

    Raises:
        ValidationError: If the value is not a valid hex color
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    sanitized = sanitize_hex_color(value)
    if sanitized is None:
        raise ValidationError(f"Invalid {label} format. Use #RGB or #RRGGBB")
    return sanitized
