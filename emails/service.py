"""
Email service for transactional emails.

Providers are tried in order: AWS SES first, then Resend. The first provider
that accepts the message wins. Successful sends are recorded in ``email_logs``.

Used for:
- Sending user invite emails
"""

import os
import logging
from typing import Dict, Any, Optional, List, Tuple, Callable
import boto3
import resend
from shared.supabase_client import get_supabase_client
from shared.validation import is_valid_email
from .templates import InviteEmailData, generate_invite_email

logger = logging.getLogger(__name__)

DEFAULT_FROM_EMAIL = "noreply@involvedtalent.com"
DEFAULT_SES_REGION = "us-east-1"


def get_ses_region() -> str:
    return os.environ.get("AWS_SES_REGION") or os.environ.get("AWS_REGION") or DEFAULT_SES_REGION


class EmailService:
    """Service for sending transactional emails via AWS SES or Resend."""

    def __init__(self):
        self.from_email = os.environ.get("EMAIL_FROM", DEFAULT_FROM_EMAIL)
        self.resend_api_key = os.environ.get("RESEND_API_KEY")
        self.ses_access_key_id = os.environ.get("AWS_SES_ACCESS_KEY_ID")
        self.ses_secret_access_key = os.environ.get("AWS_SES_SECRET_ACCESS_KEY")

    @property
    def ses_enabled(self) -> bool:
        """SES is used when explicit SES keys, an assumable role or AWS keys are configured."""
        if self.ses_access_key_id and self.ses_secret_access_key:
            return True
        return bool(os.environ.get("AWS_ROLE_ARN") or os.environ.get("AWS_ACCESS_KEY_ID"))

    @property
    def resend_enabled(self) -> bool:
        return bool(self.resend_api_key)

    def _providers(self) -> List[Tuple[str, Callable[[str, str, str, str], str]]]:
        providers = []
        if self.ses_enabled:
            providers.append(("ses", self._send_via_ses))
        if self.resend_enabled:
            providers.append(("resend", self._send_via_resend))
        return providers

    def _ses_client(self):
        if self.ses_access_key_id and self.ses_secret_access_key:
            return boto3.client(
                "ses",
                region_name=get_ses_region(),
                aws_access_key_id=self.ses_access_key_id,
                aws_secret_access_key=self.ses_secret_access_key,
            )
        return boto3.client("ses", region_name=get_ses_region())

    def _send_via_ses(self, to: str, subject: str, html_body: str, text_body: str) -> str:
        response = self._ses_client().send_email(
            Source=self.from_email,
            Destination={"ToAddresses": [to]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {
                    "Html": {"Data": html_body, "Charset": "UTF-8"},
                    "Text": {"Data": text_body, "Charset": "UTF-8"},
                },
            },
        )
        return response["MessageId"]

    def _send_via_resend(self, to: str, subject: str, html_body: str, text_body: str) -> str:
        resend.api_key = self.resend_api_key
        response = resend.Emails.send({
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        })
        return response["id"]

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str
    ) -> Dict[str, Any]:
        """
        Send an email through the first provider that accepts it.

        Args:
            to: Recipient email address
            subject: Email subject
            html_body: HTML content
            text_body: Plain text content

        Returns:
            ``{"success": True, "messageId", "provider"}`` or
            ``{"success": False, "error"}``. Provider failures never raise.

        Raises:
            ValueError: If an argument is empty or ``to`` is not an email address
        """
        for value, field in ((to, "to"), (subject, "subject"), (html_body, "html_body"), (text_body, "text_body")):
            if not value or not isinstance(value, str):
                raise ValueError(f"{field} must be a non-empty string")
        if not is_valid_email(to):
            raise ValueError("to must be a valid email address")

        providers = self._providers()
        if not providers:
            logger.warning(f"Email not sent (no provider configured): {subject} to {to}")
            return {"success": False, "error": "No email provider configured"}

        last_error = None
        for name, send in providers:
            try:
                message_id = send(to, subject, html_body, text_body)
                logger.info(f"Email sent via {name} to {to}: {message_id}")
                return {"success": True, "messageId": message_id, "provider": name}
            except Exception as e:
                last_error = str(e)
                logger.warning(f"{name} send to {to} failed, trying next provider: {last_error}")

        logger.error(f"Failed to send email to {to}: {last_error}")
        return {"success": False, "error": last_error or "Failed to send email"}

    async def log_email(
        self,
        email_type: str,
        recipient_email: str,
        subject: str,
        provider_message_id: Optional[str] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None
    ) -> None:
        """Record a sent email in ``email_logs``. Failures are logged, never raised."""
        try:
            get_supabase_client().table("email_logs").insert({
                "email_type": email_type,
                "recipient_email": recipient_email,
                "subject": subject or "",
                "provider_message_id": provider_message_id,
                "related_entity_type": related_entity_type,
                "related_entity_id": related_entity_id,
                "status": "sent",
            }).execute()
        except Exception as e:
            logger.error(f"Failed to insert email log for {recipient_email}: {str(e)}")

    async def send_invite_email(
        self,
        data: InviteEmailData,
        related_entity_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Render and send an invite email, then log it when it was delivered.

        Returns:
            Delivery result, see ``send_email``
        """
        template = generate_invite_email(data)

        result = await self.send_email(
            data.recipient_email,
            template.subject,
            template.html_body,
            template.text_body
        )

        if result["success"]:
            await self.log_email(
                email_type="invite",
                recipient_email=data.recipient_email,
                subject=template.subject,
                provider_message_id=result.get("messageId"),
                related_entity_type="user_invite",
                related_entity_id=related_entity_id,
            )

        return result


# Singleton instance
_email_service = None


def get_email_service() -> EmailService:
    """Get the singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
