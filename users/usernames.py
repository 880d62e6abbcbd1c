"""
Username derivation for new and renamed profiles.
"""

import re
import time
from typing import Awaitable, Callable

MAX_USERNAME_LENGTH = 20
MAX_NUMERIC_SUFFIX = 999
FALLBACK_USERNAME = "user"

_NON_ALPHANUMERIC_RE = re.compile(r"[^a-z0-9]")


def generate_username_from_name(name) -> str:
    """
    Lower-case a display name and keep only ``[a-z0-9]``, up to 20 characters.

    >>> generate_username_from_name("Jane O'Neil")
    'janeoneil'
    """
    if not name or not isinstance(name, str):
        return ""
    return _NON_ALPHANUMERIC_RE.sub("", name.lower())[:MAX_USERNAME_LENGTH]


def generate_username_from_email(email) -> str:
    """Derive a username from the local part of an email address."""
    if not email or not isinstance(email, str):
        return ""
    return generate_username_from_name(email.split("@")[0])


def base_username_for(name, email, username=None) -> str:
    """
    Pick the base username for a new profile: an explicit username wins,
    then the name, then the email local part. Names and emails without any
    ``[a-z0-9]`` character fall back to ``"user"``.
    """
    if isinstance(username, str) and username.strip():
        return username.strip()
    return generate_username_from_name(name) or generate_username_from_email(email) or FALLBACK_USERNAME


async def generate_unique_username(
    base_username: str,
    exists: Callable[[str], Awaitable[bool]]
) -> str:
    """
    Make a username unique by appending 1..999, then a millisecond timestamp.

    Args:
        base_username: Preferred username
        exists: Async predicate that reports whether a username is taken

    Raises:
        ValueError: If the base username is empty
    """
    if not base_username:
        raise ValueError("Base username cannot be empty")

    if not await exists(base_username):
        return base_username

    for counter in range(1, MAX_NUMERIC_SUFFIX + 1):
        candidate = f"{base_username}{counter}"
        if not await exists(candidate):
            return candidate

    return f"{base_username}{int(time.time() * 1000)}"
