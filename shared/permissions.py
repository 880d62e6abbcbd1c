"""
Access-level derivation and tenant-scoped permission checks.

Profiles carry both a legacy ``role`` string and the newer ``access_level``
enum. Every authorization decision goes through ``derive_access_level`` so
both generations of rows behave the same.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any
from .supabase_client import get_supabase_client
from .auth import get_user_from_token

logger = logging.getLogger(__name__)

MEMBER = "member"
CLIENT_ADMIN = "client_admin"
SUPER_ADMIN = "super_admin"

ACCESS_LEVELS = (MEMBER, CLIENT_ADMIN, SUPER_ADMIN)
LEGACY_ROLES = ("admin", "manager", "client", "user", "unverified")
USER_STATUSES = ("active", "inactive", "suspended")


class ForbiddenError(Exception):
    """Raised when a user doesn't have permission to access a resource."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a resource is not found."""
    pass


class ConflictError(Exception):
    """Raised when a write would violate a uniqueness constraint."""
    pass


def derive_access_level(access_level: Any = None, role: Any = None) -> str:
    """
    Resolve the effective access level of a profile.

    A valid ``access_level`` always wins. Otherwise the legacy role is mapped:
    admin -> super_admin, manager/client -> client_admin, anything else -> member.
    """
    if isinstance(access_level, str) and access_level in ACCESS_LEVELS:
        return access_level
    if role == "admin":
        return SUPER_ADMIN
    if role in ("manager", "client"):
        return CLIENT_ADMIN
    return MEMBER


def legacy_role_for(access_level: str) -> str:
    """Legacy role written alongside an access level when none was given."""
    if access_level == SUPER_ADMIN:
        return "admin"
    if access_level == CLIENT_ADMIN:
        return "manager"
    return "user"


@dataclass
class Actor:
    """The authenticated caller together with its authorization attributes."""

    auth_user_id: str
    access_level: str = MEMBER
    client_id: Optional[str] = None
    profile_id: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.access_level == SUPER_ADMIN

    @property
    def is_client_admin(self) -> bool:
        return self.access_level == CLIENT_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.is_super_admin or self.is_client_admin


async def get_actor(auth_user_id: str) -> Actor:
    """
    Load the caller's profile and derive its access level.

    A caller without a profile row is treated as a member with no tenant.
    """
    client = get_supabase_client()

    result = client.table("profiles") \
        .select("id, access_level, role, client_id") \
        .eq("auth_user_id", auth_user_id) \
        .limit(1) \
        .execute()

    if not result.data:
        logger.warning(f"No profile found for auth user {auth_user_id}")
        return Actor(auth_user_id=auth_user_id)

    profile = result.data[0]
    return Actor(
        auth_user_id=auth_user_id,
        access_level=derive_access_level(profile.get("access_level"), profile.get("role")),
        client_id=profile.get("client_id") or None,
        profile_id=profile.get("id"),
    )


def require_admin(actor: Actor, message: str = "Forbidden") -> None:
    """
    Require a super admin, or a client admin that is assigned to a tenant.

    Raises:
        ForbiddenError: If the caller is a member or an unscoped client admin
    """
    if not actor.is_admin:
        raise ForbiddenError(message)
    if actor.is_client_admin and not actor.client_id:
        raise ForbiddenError(message)


def require_super_admin(actor: Actor, message: str = "Forbidden") -> None:
    """Raises ForbiddenError unless the caller is a super admin."""
    if not actor.is_super_admin:
        raise ForbiddenError(message)


def check_client_scope(actor: Actor, client_id: Optional[str], message: str = "Forbidden") -> None:
    """
    Ensure a non super admin only touches rows of its own tenant.

    Raises:
        ForbiddenError: If the row belongs to another tenant
    """
    if actor.is_super_admin:
        return
    if not actor.client_id or client_id != actor.client_id:
        raise ForbiddenError(message)


async def get_profile(profile_id: str, columns: str = "*") -> Dict:
    """
    Fetch a single profile by ID.

    Raises:
        NotFoundError: If the profile doesn't exist
    """
    client = get_supabase_client()

    result = client.table("profiles") \
        .select(columns) \
        .eq("id", profile_id) \
        .limit(1) \
        .execute()

    if not result.data:
        raise NotFoundError("User not found")

    return result.data[0]


async def get_request_actor(req) -> Actor:
    """
    Authenticate the request and load the caller's authorization attributes.

    Raises:
        UnauthorizedError: If the bearer token is missing or invalid
    """
    user = get_user_from_token(req)
    return await get_actor(user["id"])
