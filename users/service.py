"""
Business logic for user (profile) operations.

A user is two records: an identity in Supabase Auth and a row in
``profiles``. Creation writes the identity first and deletes it again when
the profile insert fails.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from shared.supabase_client import SupabaseService, is_unique_violation
from shared.permissions import (
    Actor, ACCESS_LEVELS, LEGACY_ROLES, USER_STATUSES, SUPER_ADMIN,
    derive_access_level, legacy_role_for, require_admin, check_client_scope,
    get_profile, ForbiddenError, NotFoundError, ConflictError
)
from shared.validation import ValidationError, is_non_empty_string, is_valid_email
from .credentials import generate_temporary_password, password_error
from .usernames import (
    base_username_for, generate_username_from_name,
    generate_username_from_email, generate_unique_username
)

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "User with this email already exists"
INVALID_ROLE_MESSAGE = f"Invalid role. Must be one of: {', '.join(LEGACY_ROLES)}"
INVALID_ACCESS_LEVEL_MESSAGE = f"Invalid access_level. Must be one of: {', '.join(ACCESS_LEVELS)}"
INVALID_STATUS_MESSAGE = f"Invalid status. Must be one of: {', '.join(USER_STATUSES)}"

# Supabase Auth caps list_users pages at 1000
AUTH_USERS_PAGE_SIZE = 1000

# Spreadsheet value for "no industry"
NO_INDUSTRY = "N/A"

_DUPLICATE_AUTH_HINTS = (
    "already registered", "already been registered", "already exists",
    "user_already_exists", "email_exists",
)


class UserProvisioningError(Exception):
    """Raised when Supabase Auth or the profile insert fails (HTTP 500)."""
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_duplicate_auth_error(error: Exception) -> bool:
    message = str(error).lower()
    code = str(getattr(error, "code", "") or "").lower()
    return any(hint in message or hint in code for hint in _DUPLICATE_AUTH_HINTS)


def _validate_new_user(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a create-user payload and normalise its fields.

    Raises:
        ValidationError: On the first invalid field
    """
    name = data.get("name")
    if not is_non_empty_string(name):
        raise ValidationError("User name is required")

    email = data.get("email")
    if not is_non_empty_string(email):
        raise ValidationError("User email is required")
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")

    access_level = data.get("access_level")
    if access_level is not None and access_level not in ACCESS_LEVELS:
        raise ValidationError(INVALID_ACCESS_LEVEL_MESSAGE)

    role = data.get("role")
    if role is not None and role not in LEGACY_ROLES:
        raise ValidationError(INVALID_ROLE_MESSAGE)

    status = data.get("status")
    if status is not None and status not in USER_STATUSES:
        raise ValidationError(INVALID_STATUS_MESSAGE)

    password = data.get("password")
    if password is not None and password != "":
        error = password_error(password)
        if error:
            raise ValidationError(error)

    return {
        "name": name.strip(),
        "email": email.strip().lower(),
        "username": data.get("username"),
        "client_id": data.get("client_id") or None,
        "industry_id": data.get("industry_id") or None,
        "password": password or None,
        "access_level": access_level,
        "role": role,
        "status": status or "active",
    }


class UserService(SupabaseService):
    """Service class for user CRUD, bulk creation and password resets."""

    @property
    def auth_admin(self):
        """Get the Supabase Auth admin API."""
        return self.client.auth.admin

    async def list_users(self, actor: Actor) -> List[Dict]:
        """
        List users. Super admins see everyone, client admins their tenant.

        Raises:
            ForbiddenError: If the caller is not an admin
        """
        require_admin(actor)

        query = self.table("profiles").select("*")
        if not actor.is_super_admin:
            query = query.eq("client_id", actor.client_id)

        result = query.order("created_at", desc=True).execute()
        return result.data

    async def get_user(self, actor: Actor, user_id: str) -> Dict:
        """
        Get a single user profile.

        Raises:
            ForbiddenError: If the caller may not see this user
            NotFoundError: If the user doesn't exist
        """
        require_admin(actor)
        profile = await get_profile(user_id)
        check_client_scope(actor, profile.get("client_id"))
        return profile

    async def _email_taken(self, email: str) -> bool:
        result = self.table("profiles") \
            .select("id") \
            .eq("email", email) \
            .limit(1) \
            .execute()
        return bool(result.data)

    async def _unique_username(self, base_username: str, exclude_id: Optional[str] = None) -> str:
        async def exists(candidate: str) -> bool:
            query = self.table("profiles").select("id").eq("username", candidate)
            if exclude_id:
                query = query.neq("id", exclude_id)
            return bool(query.limit(1).execute().data)

        return await generate_unique_username(base_username, exists)

    def _resolve_access(self, actor: Actor, prepared: Dict[str, Any]) -> Dict[str, Any]:
        """
        Work out the tenant, access level and legacy role of a new user.

        Raises:
            ForbiddenError: If a client admin tries to create a super admin
        """
        access_level = derive_access_level(prepared["access_level"], prepared["role"])

        if actor.is_client_admin:
            if access_level == SUPER_ADMIN or prepared["role"] == "admin":
                raise ForbiddenError()
            client_id = actor.client_id
        else:
            client_id = prepared["client_id"]

        return {
            "client_id": client_id,
            "access_level": access_level,
            "role": prepared["role"] or legacy_role_for(access_level),
        }

    def _create_auth_user(self, email: str, password: str, name: str, username: str) -> str:
        """
        Create a confirmed Supabase Auth identity.

        Returns:
            The new auth user ID

        Raises:
            ConflictError: If the email is already registered
            UserProvisioningError: For any other auth failure
        """
        try:
            response = self.auth_admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {
                    "full_name": name,
                    "username": username,
                },
            })
        except Exception as e:
            if _is_duplicate_auth_error(e):
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE)
            logger.error(f"Error creating auth user for {email}: {str(e)}")
            raise UserProvisioningError("Failed to create auth user")

        user = getattr(response, "user", None)
        if user is None:
            raise UserProvisioningError("Failed to create auth user")

        return user.id

    def _discard_auth_user(self, auth_user_id: str) -> None:
        """Delete an auth identity whose profile could not be created."""
        try:
            self.auth_admin.delete_user(auth_user_id)
            logger.info(f"Rolled back auth user {auth_user_id}")
        except Exception as e:
            logger.error(f"Failed to clean up auth user {auth_user_id}: {str(e)}")

    def _find_auth_user_id(self, email: str) -> Optional[str]:
        """
        Look up an existing auth identity by email, page by page until a
        short page comes back. Lookup failures count as not found.
        """
        page = 1
        while True:
            try:
                users = self.auth_admin.list_users(page=page, per_page=AUTH_USERS_PAGE_SIZE) or []
            except Exception as e:
                logger.warning(f"Could not check for existing auth user: {str(e)}")
                return None

            for user in users:
                user_email = getattr(user, "email", None) or ""
                if user_email.lower() == email:
                    return user.id

            if len(users) < AUTH_USERS_PAGE_SIZE:
                return None
            page += 1

    def _insert_profile(self, profile_data: Dict[str, Any], auth_user_id: str, rollback: bool) -> Dict:
        """
        Insert a profile row. On failure the auth identity is deleted when
        ``rollback`` is set.

        Raises:
            ConflictError: On a unique-constraint violation
            UserProvisioningError: For any other insert failure
        """
        try:
            result = self.table("profiles").insert(profile_data).execute()
        except Exception as e:
            logger.error(f"Error creating profile for {profile_data['email']}: {str(e)}")
            if rollback:
                self._discard_auth_user(auth_user_id)
            if is_unique_violation(e):
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE)
            raise UserProvisioningError("Failed to create user profile")

        if not result.data:
            if rollback:
                self._discard_auth_user(auth_user_id)
            raise UserProvisioningError("Failed to create user profile")

        return result.data[0]

    def _profile_data(
        self,
        prepared: Dict[str, Any],
        access: Dict[str, Any],
        auth_user_id: str,
        username: str
    ) -> Dict[str, Any]:
        return {
            "auth_user_id": auth_user_id,
            "username": username,
            "name": prepared["name"],
            "email": prepared["email"],
            "client_id": access["client_id"],
            "industry_id": prepared["industry_id"],
            "role": access["role"],
            "access_level": access["access_level"],
            "completed_profile": False,
            "status": prepared["status"],
        }

    async def create_user(self, actor: Actor, data: Dict[str, Any]) -> Dict:
        """
        Create an auth identity and its profile.

        Args:
            actor: The calling admin
            data: name, email and optional username, client_id, industry_id,
                password, access_level, role, status

        Returns:
            The created profile row

        Raises:
            ForbiddenError: If the caller may not create this user
            ValidationError: If a field is invalid
            ConflictError: If the email is already in use
            UserProvisioningError: If the auth or profile write fails
        """
        require_admin(actor)

        prepared = _validate_new_user(data)
        access = self._resolve_access(actor, prepared)

        if await self._email_taken(prepared["email"]):
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

        username = await self._unique_username(
            base_username_for(prepared["name"], prepared["email"], prepared["username"])
        )

        auth_user_id = self._create_auth_user(
            prepared["email"],
            prepared["password"] or generate_temporary_password(),
            prepared["name"],
            username
        )

        profile = self._insert_profile(
            self._profile_data(prepared, access, auth_user_id, username),
            auth_user_id,
            rollback=True
        )

        logger.info(f"Created user {profile.get('id')} ({prepared['email']})")
        return profile

    async def _create_bulk_entry(self, actor: Actor, entry: Dict[str, Any]) -> Dict:
        """
        Create one user of a bulk request. An auth identity that already
        exists for the email is reused and never rolled back.
        """
        prepared = _validate_new_user(entry)

        if await self._email_taken(prepared["email"]):
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

        access = self._resolve_access(actor, prepared)
        username = await self._unique_username(
            base_username_for(prepared["name"], prepared["email"], prepared["username"])
        )

        auth_user_id = self._find_auth_user_id(prepared["email"])
        created_auth_user = auth_user_id is None

        if created_auth_user:
            auth_user_id = self._create_auth_user(
                prepared["email"],
                prepared["password"] or generate_temporary_password(),
                prepared["name"],
                username
            )
        elif prepared["password"]:
            self.auth_admin.update_user_by_id(auth_user_id, {"password": prepared["password"]})

        return self._insert_profile(
            self._profile_data(prepared, access, auth_user_id, username),
            auth_user_id,
            rollback=created_auth_user
        )

    async def _create_entries(self, actor: Actor, entries: List[Any]) -> List[Dict[str, Any]]:
        """Create every entry on its own, so one failure never aborts the batch."""
        results = []
        for entry in entries:
            if not isinstance(entry, dict):
                results.append({"user": "unknown", "success": False, "error": "Invalid user entry"})
                continue

            email = entry.get("email")
            label = email if is_non_empty_string(email) else (entry.get("name") or "unknown")

            try:
                profile = await self._create_bulk_entry(actor, entry)
                results.append({"user": label, "success": True, "userId": profile.get("id")})
            except (ValidationError, ForbiddenError, ConflictError, UserProvisioningError) as e:
                results.append({"user": label, "success": False, "error": str(e)})
            except Exception as e:
                logger.error(f"Error creating bulk user {label}: {str(e)}")
                results.append({"user": label, "success": False, "error": "Failed to create user"})

        created = sum(1 for result in results if result["success"])
        logger.info(f"Bulk user creation: {created} created, {len(results) - created} failed")
        return results

    async def bulk_create_users(self, actor: Actor, users: Any) -> Dict[str, Any]:
        """
        Create many users from ``name``/``email``/... entries.

        Returns:
            dict with ``created``, ``failed`` and per-entry ``results``

        Raises:
            ForbiddenError: If the caller is not an admin
            ValidationError: If ``users`` is not a non-empty list
        """
        require_admin(actor)

        if not isinstance(users, list) or not users:
            raise ValidationError("Users array is required and must not be empty")

        results = await self._create_entries(actor, users)
        created = sum(1 for result in results if result["success"])

        return {
            "success": True,
            "created": created,
            "failed": len(results) - created,
            "results": results,
        }

    def _industry_ids_by_name(self) -> Dict[str, str]:
        result = self.table("industries").select("id, name").execute()
        return {
            row["name"].strip().lower(): row["id"]
            for row in result.data
            if isinstance(row.get("name"), str)
        }

    async def import_client_users(self, actor: Actor, client_id: str, rows: Any) -> Dict[str, Any]:
        """
        Import spreadsheet rows (``Name``, ``Email``, ``Username``,
        ``Industry``) as users of one client.

        Industry names are matched case-insensitively against ``industries``;
        ``N/A`` and unknown names leave the industry unset. Every row lands in
        ``client_id`` whatever the caller's body says.

        Returns:
            dict with ``created``, ``failed`` and per-row ``results``
            (``user``, ``success``, ``error``, ``profileId``)

        Raises:
            ForbiddenError: If the caller is not an admin of this client
            ValidationError: If ``rows`` is not a non-empty list
        """
        require_admin(actor)
        check_client_scope(actor, client_id)

        if not isinstance(rows, list) or not rows:
            raise ValidationError("Users array is required")

        industries = self._industry_ids_by_name()

        entries = []
        for row in rows:
            if not isinstance(row, dict):
                entries.append(row)
                continue

            industry = row.get("Industry")
            industry_id = None
            if isinstance(industry, str) and industry.strip().upper() != NO_INDUSTRY:
                industry_id = industries.get(industry.strip().lower())

            entries.append({
                "name": row.get("Name"),
                "email": row.get("Email"),
                "username": row.get("Username"),
                "client_id": client_id,
                "industry_id": industry_id,
            })

        results = await self._create_entries(actor, entries)
        created = sum(1 for result in results if result["success"])

        return {
            "success": True,
            "created": created,
            "failed": len(results) - created,
            "results": [
                {
                    "user": result["user"],
                    "success": result["success"],
                    "error": result.get("error"),
                    "profileId": result.get("userId"),
                }
                for result in results
            ],
        }

    async def _get_managed_target(self, actor: Actor, user_id: str, columns: str) -> Dict:
        """Fetch a profile the caller manages, enforcing the tenant boundary."""
        require_admin(actor)
        target = await get_profile(user_id, columns)
        check_client_scope(actor, target.get("client_id"))
        return target

    async def update_user(self, actor: Actor, user_id: str, data: Dict[str, Any]) -> Dict:
        """
        Partially update a user profile.

        Raises:
            ForbiddenError: If the caller may not make this change
            NotFoundError: If the user doesn't exist
            ValidationError: If a field is invalid or nothing changes
        """
        target = await self._get_managed_target(
            actor, user_id, "id, email, role, access_level, client_id"
        )
        target_level = derive_access_level(target.get("access_level"), target.get("role"))

        updates: Dict[str, Any] = {}

        if "name" in data:
            name = data["name"]
            if not is_non_empty_string(name):
                raise ValidationError("User name cannot be empty")
            updates["name"] = name.strip()

            base = generate_username_from_name(updates["name"]) \
                or generate_username_from_email(target.get("email"))
            if base:
                updates["username"] = await self._unique_username(base, exclude_id=user_id)

        if "email" in data:
            email = data["email"]
            if not is_non_empty_string(email):
                raise ValidationError("User email cannot be empty")
            if not is_valid_email(email):
                raise ValidationError("Invalid email format")
            updates["email"] = email.strip().lower()

        if "client_id" in data:
            if actor.is_client_admin and data["client_id"] != actor.client_id:
                raise ForbiddenError()
            updates["client_id"] = data["client_id"]

        if "industry_id" in data:
            updates["industry_id"] = data["industry_id"]

        if "completed_profile" in data:
            updates["completed_profile"] = data["completed_profile"]

        if "access_level" in data:
            access_level = data["access_level"]
            if access_level not in ACCESS_LEVELS:
                raise ValidationError(INVALID_ACCESS_LEVEL_MESSAGE)
            if actor.is_client_admin and SUPER_ADMIN in (target_level, access_level):
                raise ForbiddenError()
            updates["access_level"] = access_level

        if "role" in data:
            role = data["role"]
            if role not in LEGACY_ROLES:
                raise ValidationError(INVALID_ROLE_MESSAGE)
            if actor.is_client_admin and "admin" in (target.get("role"), role):
                raise ForbiddenError()
            updates["role"] = role

        if "status" in data:
            if data["status"] not in USER_STATUSES:
                raise ValidationError(INVALID_STATUS_MESSAGE)
            updates["status"] = data["status"]

        if not updates:
            raise ValidationError("No fields to update")

        updates["updated_at"] = _utc_now()

        result = self.table("profiles") \
            .update(updates) \
            .eq("id", user_id) \
            .execute()

        if not result.data:
            raise NotFoundError("User not found")

        return result.data[0]

    async def delete_user(self, actor: Actor, user_id: str) -> bool:
        """
        Delete a profile, then its auth identity (best-effort).

        Raises:
            ForbiddenError: If the caller may not delete this user
            NotFoundError: If the user doesn't exist
        """
        target = await self._get_managed_target(
            actor, user_id, "id, auth_user_id, role, access_level, client_id"
        )

        if actor.is_client_admin and \
                derive_access_level(target.get("access_level"), target.get("role")) == SUPER_ADMIN:
            raise ForbiddenError()

        result = self.table("profiles") \
            .delete() \
            .eq("id", user_id) \
            .execute()

        if not result.data:
            raise NotFoundError("User not found")

        auth_user_id = target.get("auth_user_id")
        if auth_user_id:
            try:
                self.auth_admin.delete_user(auth_user_id)
            except Exception as e:
                logger.warning(f"Deleted profile {user_id} but not auth user {auth_user_id}: {str(e)}")

        logger.info(f"Deleted user {user_id}")
        return True

    async def reset_password(self, actor: Actor, user_id: str, password: Any) -> None:
        """
        Set a new password on a user's auth identity.

        Raises:
            ForbiddenError: If the caller may not reset this user's password
            NotFoundError: If the user doesn't exist
            ValidationError: If the password is invalid or the user has no auth identity
            UserProvisioningError: If Supabase Auth rejects the update
        """
        require_admin(actor, "Forbidden: Only admins can reset passwords")

        target = await get_profile(user_id, "id, auth_user_id, client_id, access_level, role")

        if actor.is_client_admin:
            check_client_scope(
                actor, target.get("client_id"),
                "Forbidden: Cannot reset password for users outside your organization"
            )
            if derive_access_level(target.get("access_level"), target.get("role")) == SUPER_ADMIN:
                raise ForbiddenError("Forbidden: Cannot reset password for super admins")

        error = password_error(password)
        if error:
            raise ValidationError(error)

        auth_user_id = target.get("auth_user_id")
        if not auth_user_id:
            raise ValidationError("User does not have an auth account")

        try:
            self.auth_admin.update_user_by_id(auth_user_id, {"password": password})
        except Exception as e:
            logger.error(f"Error resetting password for user {user_id}: {str(e)}")
            raise UserProvisioningError(f"Failed to reset password: {str(e)}")

        logger.info(f"Reset password for user {user_id}")
