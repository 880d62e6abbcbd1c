from datetime import datetime

import pytest
from botocore.exceptions import ClientError

import emails.service as email_module
from emails.service import EmailService
from emails.templates import InviteEmailData, format_expiration_date, generate_invite_email

PROVIDER_ENV = (
    "AWS_SES_ACCESS_KEY_ID", "AWS_SES_SECRET_ACCESS_KEY", "AWS_ROLE_ARN",
    "AWS_ACCESS_KEY_ID", "RESEND_API_KEY", "EMAIL_FROM",
)


class FakeSES:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def send_email(self, **kwargs):
        self.sent.append(kwargs)
        if self.error:
            raise self.error
        return {"MessageId": "ses-message-1"}


@pytest.fixture
def clean_env(monkeypatch):
    for name in PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def fake_ses(clean_env):
    ses = FakeSES()
    clean_env.setattr(email_module.boto3, "client", lambda service, **kwargs: ses)
    clean_env.setenv("AWS_SES_ACCESS_KEY_ID", "AKIATEST")
    clean_env.setenv("AWS_SES_SECRET_ACCESS_KEY", "secret")
    return ses


@pytest.fixture
def resend_outbox(clean_env):
    outbox = []

    def send(params):
        outbox.append(params)
        return {"id": "resend-message-1"}

    clean_env.setattr(email_module.resend.Emails, "send", send)
    clean_env.setenv("RESEND_API_KEY", "re_test")
    return outbox


def _invite(**overrides) -> InviteEmailData:
    fields = dict(
        recipient_email="jane@example.com",
        recipient_name="Jane <Doe>",
        invite_token="a" * 64,
        invite_url="https://app.example.com/auth/invite?token=" + "a" * 64,
        expiration_date=datetime(2024, 1, 15, 12, 30),
        organization_name="Acme Talent",
    )
    fields.update(overrides)
    return InviteEmailData(**fields)


def test_format_expiration_date():
    assert format_expiration_date(datetime(2024, 1, 15)) == "Monday, January 15, 2024"
    assert format_expiration_date(datetime(2024, 3, 5)) == "Tuesday, March 5, 2024"

    with pytest.raises(ValueError):
        format_expiration_date("2024-01-15")


def test_generate_invite_email():
    template = generate_invite_email(_invite())

    assert template.subject == "You're invited to join Acme Talent"
    assert "Accept Invitation" in template.html_body
    assert "Jane &lt;Doe&gt;" in template.html_body
    assert "Monday, January 15, 2024" in template.html_body
    assert f"Accept Invitation: {_invite().invite_url}" in template.text_body


def test_generate_invite_email_defaults_and_validation():
    assert generate_invite_email(_invite(organization_name=None)).subject == "You're invited to join our platform"

    with pytest.raises(ValueError, match="invite_url"):
        generate_invite_email(_invite(invite_url=""))


@pytest.mark.asyncio
async def test_send_via_ses(fake_ses):
    result = await EmailService().send_email("jane@example.com", "Hello", "<p>Hi</p>", "Hi")

    assert result == {"success": True, "messageId": "ses-message-1", "provider": "ses"}
    sent = fake_ses.sent[0]
    assert sent["Destination"] == {"ToAddresses": ["jane@example.com"]}
    assert sent["Source"] == "noreply@involvedtalent.com"
    assert sent["Message"]["Subject"]["Data"] == "Hello"


@pytest.mark.asyncio
async def test_ses_failure_falls_back_to_resend(fake_ses, resend_outbox):
    fake_ses.error = ClientError({"Error": {"Code": "MessageRejected", "Message": "Email address is not verified"}}, "SendEmail")

    result = await EmailService().send_email("jane@example.com", "Hello", "<p>Hi</p>", "Hi")

    assert result == {"success": True, "messageId": "resend-message-1", "provider": "resend"}
    assert resend_outbox[0]["to"] == ["jane@example.com"]


@pytest.mark.asyncio
async def test_any_provider_error_falls_through(fake_ses, resend_outbox):
    fake_ses.error = RuntimeError("endpoint unreachable")

    result = await EmailService().send_email("jane@example.com", "Hello", "<p>Hi</p>", "Hi")

    assert result["provider"] == "resend"
    assert len(fake_ses.sent) == 1
    assert len(resend_outbox) == 1


@pytest.mark.asyncio
async def test_every_provider_failing(fake_ses, clean_env):
    fake_ses.error = ClientError({"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "SendEmail")

    result = await EmailService().send_email("jane@example.com", "Hello", "<p>Hi</p>", "Hi")

    assert result["success"] is False
    assert "Rate exceeded" in result["error"]


@pytest.mark.asyncio
async def test_no_provider_configured(clean_env):
    result = await EmailService().send_email("jane@example.com", "Hello", "<p>Hi</p>", "Hi")

    assert result == {"success": False, "error": "No email provider configured"}


@pytest.mark.asyncio
async def test_send_email_rejects_bad_arguments(clean_env):
    service = EmailService()

    with pytest.raises(ValueError, match="valid email"):
        await service.send_email("not-an-email", "Hello", "<p>Hi</p>", "Hi")
    with pytest.raises(ValueError, match="subject"):
        await service.send_email("jane@example.com", "", "<p>Hi</p>", "Hi")


@pytest.mark.asyncio
async def test_send_invite_email_is_logged(fake_supabase, resend_outbox):
    result = await EmailService().send_invite_email(_invite(), related_entity_id="invite-1")

    assert result["success"] is True
    log = fake_supabase.tables["email_logs"][0]
    assert log["email_type"] == "invite"
    assert log["recipient_email"] == "jane@example.com"
    assert log["subject"] == "You're invited to join Acme Talent"
    assert log["provider_message_id"] == "resend-message-1"
    assert log["related_entity_type"] == "user_invite"
    assert log["related_entity_id"] == "invite-1"
    assert log["status"] == "sent"


@pytest.mark.asyncio
async def test_log_failure_does_not_fail_the_send(fake_supabase, resend_outbox):
    fake_supabase.fail("email_logs", "insert")

    result = await EmailService().send_invite_email(_invite())

    assert result["success"] is True
    assert "email_logs" not in fake_supabase.tables or fake_supabase.tables["email_logs"] == []


@pytest.mark.asyncio
async def test_failed_invite_email_is_not_logged(fake_supabase, clean_env):
    result = await EmailService().send_invite_email(_invite())

    assert result["success"] is False
    assert ("email_logs", "insert") not in fake_supabase.calls
