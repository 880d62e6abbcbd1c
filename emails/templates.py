"""
Invite email content.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

DEFAULT_ORGANIZATION_NAME = "our platform"


@dataclass
class InviteEmailData:
    recipient_email: str
    recipient_name: str
    invite_token: str
    invite_url: str
    expiration_date: datetime
    organization_name: Optional[str] = None


@dataclass
class EmailTemplate:
    subject: str
    html_body: str
    text_body: str


def format_expiration_date(date: datetime) -> str:
    """
    Format a date the way invite emails display it.

    >>> format_expiration_date(datetime(2024, 1, 15))
    'Monday, January 15, 2024'
    """
    if not isinstance(date, datetime):
        raise ValueError("date must be a valid datetime")
    return f"{date.strftime('%A, %B')} {date.day}, {date.year}"


def _require_text(value, field: str) -> None:
    if not value or not isinstance(value, str):
        raise ValueError(f"{field} is required and must be a string")


def generate_invite_email(data: InviteEmailData) -> EmailTemplate:
    """
    Build the subject, HTML body and plain-text body of an invite email.

    Raises:
        ValueError: If a required field is missing
    """
    _require_text(data.recipient_email, "recipient_email")
    _require_text(data.recipient_name, "recipient_name")
    _require_text(data.invite_token, "invite_token")
    _require_text(data.invite_url, "invite_url")

    org_name = data.organization_name or DEFAULT_ORGANIZATION_NAME
    expiration = format_expiration_date(data.expiration_date)

    subject = f"You're invited to join {org_name}"

    html_org = escape(org_name)
    html_name = escape(data.recipient_name)
    html_url = escape(data.invite_url, quote=True)

    html_body = f"""
<!DOCTYPE html>
<html>
<head>
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background-color: #2D2E30; color: white; padding: 20px; text-align: center; }}
    .content {{ padding: 20px; background-color: #f9f9f9; }}
    .button {{ display: inline-block; padding: 12px 24px; background-color: #FFBA00; color: #2D2E30; text-decoration: none; border-radius: 4px; font-weight: bold; }}
    .footer {{ margin-top: 20px; padding-top: 20px; border-top: 1px solid #ddd; font-size: 12px; color: #666; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Welcome to {html_org}!</h1>
    </div>
    <div class="content">
      <p>Hi {html_name},</p>
      <p>You've been invited to join {html_org}. Click the button below to accept your invitation and set up your account.</p>
      <p style="text-align: center; margin: 30px 0;">
        <a href="{html_url}" class="button">Accept Invitation</a>
      </p>
      <p>Or copy and paste this link into your browser:</p>
      <p style="word-break: break-all; color: #666;">{html_url}</p>
      <p><strong>This invitation will expire on {expiration}.</strong></p>
      <p>If you didn't expect this invitation, you can safely ignore this email.</p>
    </div>
    <div class="footer">
      <p>This is an automated message. Please do not reply to this email.</p>
    </div>
  </div>
</body>
</html>
""".strip()

    text_body = f"""
Hi {data.recipient_name},

You've been invited to join {org_name}. Open the link below to accept your invitation and set up your account.

Accept Invitation: {data.invite_url}

This invitation will expire on {expiration}.

If you didn't expect this invitation, you can safely ignore this email.

---
This is an automated message. Please do not reply to this email.
""".strip()

    return EmailTemplate(subject=subject, html_body=html_body, text_body=text_body)
