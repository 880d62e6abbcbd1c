"""
Business logic for user invites.
"""

import os
import logging
from typing import List, Dict, Any
from shared.supabase_client import SupabaseService
from shared.permissions import Actor, require_admin, get_profile, ForbiddenError
from emails.service import get_email_service
from emails.templates import InviteEmailData
from .tokens import generate_invite_token_with_expiration

logger = logging.getLogger(__name__)

DEFAULT_APP_URL = "http://localhost:3000"
DEFAULT_APP_NAME = "Involved Talent"
EMAIL_FAILED_WARNING = "Invite created but email sending failed"


def get_app_url() -> str:
    return os.environ.get("APP_URL", DEFAULT_APP_URL).rstrip("/")


def get_app_name() -> str:
    return os.environ.get("APP_NAME", DEFAULT_APP_NAME)


class InviteService(SupabaseService):
    """Service class for creating and listing user invites."""

    async def send_invite(self, actor: Actor, user_id: str) -> Dict[str, Any]:
        """
        Create a pending invite for a user and email it.

        A failed email does not undo the invite; the result then carries a
        ``warning`` instead of a ``messageId``.

        Returns:
            dict with ``success``, ``invite`` and ``messageId`` or ``warning``

        Raises:
            ForbiddenError: If the caller may not invite this user
            NotFoundError: If the user doesn't exist
        """
        require_admin(actor)

        profile = await get_profile(user_id, "id, name, email, client_id")

        # Client admins may also invite users that are not yet assigned to a tenant
        if actor.is_client_admin and profile.get("client_id") not in (None, actor.client_id):
            raise ForbiddenError()

        token, expires_at = generate_invite_token_with_expiration()

        result = self.table("user_invites").insert({
            "profile_id": profile["id"],
            "token": token,
            "expires_at": expires_at.isoformat(),
            "status": "pending",
            "invited_by": actor.profile_id,
        }).execute()

        if not result.data:
            raise Exception("Failed to create invite")

        invite = result.data[0]
        logger.info(f"Created invite {invite.get('id')} for user {user_id}")

        invite_url = f"{get_app_url()}/auth/invite?token={token}"

        try:
            delivery = await get_email_service().send_invite_email(
                InviteEmailData(
                    recipient_email=profile["email"],
                    recipient_name=profile.get("name") or profile["email"],
                    invite_token=token,
                    invite_url=invite_url,
                    expiration_date=expires_at,
                    organization_name=get_app_name(),
                ),
                related_entity_id=invite.get("id"),
            )
        except Exception as e:
            logger.error(f"Error sending invite email to {profile.get('email')}: {str(e)}")
            delivery = {"success": False, "error": str(e)}

        if not delivery["success"]:
            logger.warning(f"Invite {invite.get('id')} created but email failed: {delivery.get('error')}")
            return {"success": True, "invite": invite, "warning": EMAIL_FAILED_WARNING}

        return {"success": True, "invite": invite, "messageId": delivery.get("messageId")}

    async def list_invites(self, actor: Actor, user_id: str) -> List[Dict]:
        """
        List a user's invites, newest first.
        Admins see invites of users in their scope, members only their own.

        Raises:
            ForbiddenError: If the caller may not see these invites
            NotFoundError: If the user doesn't exist
        """
        if actor.profile_id != user_id:
            require_admin(actor)
            profile = await get_profile(user_id, "id, client_id")
            if actor.is_client_admin and profile.get("client_id") != actor.client_id:
                raise ForbiddenError()

        result = self.table("user_invites") \
            .select("*") \
            .eq("profile_id", user_id) \
            .order("created_at", desc=True) \
            .execute()

        return result.data
