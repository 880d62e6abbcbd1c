"""
Invite token generation.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

INVITE_TOKEN_BYTES = 32
INVITE_EXPIRY_DAYS = 7


def generate_invite_token() -> str:
    """Return a URL-safe token of 64 hex characters."""
    return secrets.token_hex(INVITE_TOKEN_BYTES)


def generate_invite_token_with_expiration(
    now: Optional[datetime] = None
) -> Tuple[str, datetime]:
    """Return a fresh token and the moment it stops being valid."""
    issued_at = now or datetime.now(timezone.utc)
    return generate_invite_token(), issued_at + timedelta(days=INVITE_EXPIRY_DAYS)
