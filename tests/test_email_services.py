import uuid
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from docflow.config import settings
from docflow.models.portal import (
    Deadline,
    Document,
    DocumentStatus,
    Reminder,
    User,
    UserRole,
)
from docflow.services import email as email_module
from docflow.services.email import (
    EmailDeliveryError,
    EmailDispatcher,
    render_deadline_approaching,
    render_document_uploaded,
    render_reminder,
)

SMTP_SETTINGS = replace(settings, smtp_user="mailer", smtp_password="secret")


def _user(email="ana@example.com"):
    return User(
        id=uuid.uuid4(),
        email=email,
        first_name="Ana",
        last_name="Lopez",
        department="IT",
        role=UserRole.user,
    )


def _deadline():
    return Deadline(
        id=uuid.uuid4(),
        document_type="Tax return",
        title="Annual <tax> filing",
        description=None,
        due_date=datetime(2026, 4, 30, tzinfo=timezone.utc),
        is_global=True,
    )


class TestTemplates:
    def test_document_uploaded(self):
        user = _user()
        document = Document(
            original_name="scan.pdf",
            document_type="ID",
            file_size=2 * 1024 * 1024,
            status=DocumentStatus.pending,
        )
        html = render_document_uploaded(user, document)
        assert "scan.pdf" in html
        assert "2.00 MB" in html
        assert "Pending review" in html
        assert settings.brand_name in html

    def test_reminder_escapes_user_content(self):
        html = render_reminder(Reminder(), _deadline())
        assert "Annual &lt;tax&gt; filing" in html
        assert "April 30, 2026" in html
        assert "No additional description" in html

    def test_deadline_approaching(self):
        html = render_deadline_approaching(_deadline())
        assert "Deadline approaching" in html
        assert f"{settings.app_url}/upload" in html


class TestEmailDispatcher:
    @pytest.mark.asyncio
    async def test_send_skipped_when_unconfigured(self):
        with patch("docflow.services.email.aiosmtplib.send", new_callable=AsyncMock) as send:
            sent = await EmailDispatcher.send("a@example.com", "Hi", "<p>x</p>", "test")
        assert sent is False
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_delivers_message(self):
        with patch.object(email_module, "settings", SMTP_SETTINGS), patch(
            "docflow.services.email.aiosmtplib.send", new_callable=AsyncMock
        ) as send:
            sent = await EmailDispatcher.send("a@example.com", "Hi", "<p>x</p>", "test")
        assert sent is True
        message = send.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["Subject"] == "Hi"
        assert send.call_args.kwargs["username"] == "mailer"

    @pytest.mark.asyncio
    async def test_send_failure_raises(self):
        with patch.object(email_module, "settings", SMTP_SETTINGS), patch(
            "docflow.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("relay refused"),
        ):
            with pytest.raises(EmailDeliveryError):
                await EmailDispatcher.send("a@example.com", "Hi", "<p>x</p>", "test")

    @pytest.mark.asyncio
    async def test_reminder_counts_each_recipient(self):
        recipients = [_user("a@example.com"), _user("b@example.com")]
        with patch.object(email_module, "settings", SMTP_SETTINGS), patch(
            "docflow.services.email.aiosmtplib.send", new_callable=AsyncMock
        ) as send:
            sent = await EmailDispatcher.notify_reminder_fired(
                Reminder(), _deadline(), recipients
            )
        assert sent == 2
        assert send.await_count == 2
