import logging
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import aiosmtplib

from docflow.config import settings
from docflow.models.portal import Deadline, Document, DocumentStatus, Reminder, User
from docflow.observability import EMAIL_SENDS

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


_STYLE = """
    body { font-family: 'Inter', Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: %(header)s; color: white; padding: 30px; border-radius: 8px 8px 0 0; text-align: center; }
    .content { background: white; padding: 30px; border: 1px solid #e5e7eb; }
    .footer { background: #f9fafb; padding: 20px; border-radius: 0 0 8px 8px; text-align: center; font-size: 14px; color: #6b7280; }
    .button { display: inline-block; background: %(button)s; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin: 20px 0; }
    .info { background: %(info)s; padding: 20px; border-radius: 6px; margin: 20px 0; }
"""

_LAYOUT = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>%(title)s - %(brand)s</title>
    <style>%(style)s</style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>%(heading)s</h1></div>
        <div class="content">
%(body)s
            <a href="%(link)s" class="button">%(link_text)s</a>
        </div>
        <div class="footer">
            <p>%(brand)s - %(tagline)s</p>
            <p>This is an automated message, please do not reply.</p>
        </div>
    </div>
</body>
</html>
"""


def _format_date(value: datetime) -> str:
    return value.strftime("%B %d, %Y")


def _render(
    *, title: str, heading: str, body: str, link_path: str, link_text: str, palette: dict
) -> str:
    return _LAYOUT % {
        "title": escape(title),
        "brand": escape(settings.brand_name),
        "tagline": escape(settings.brand_tagline),
        "style": _STYLE % palette,
        "heading": escape(heading),
        "body": body,
        "link": escape(f"{settings.app_url.rstrip('/')}{link_path}"),
        "link_text": escape(link_text),
    }


def render_document_uploaded(user: User, document: Document) -> str:
    size_mb = document.file_size / (1024 * 1024)
    status = (
        "Pending review"
        if document.status == DocumentStatus.pending
        else document.status.value.capitalize()
    )
    body = f"""
            <p>Hello {escape(user.first_name)},</p>
            <p>Your document was uploaded successfully.</p>
            <div class="info">
                <h3>Document details</h3>
                <p><strong>Name:</strong> {escape(document.original_name)}</p>
                <p><strong>Type:</strong> {escape(document.document_type)}</p>
                <p><strong>Size:</strong> {size_mb:.2f} MB</p>
                <p><strong>Status:</strong> {escape(status)}</p>
            </div>
            <p>You will be notified once it has been reviewed.</p>"""
    return _render(
        title="Document uploaded",
        heading="Document uploaded successfully",
        body=body,
        link_path="/documents",
        link_text="View my documents",
        palette={"header": "#2563eb", "button": "#2563eb", "info": "#f3f4f6"},
    )


def render_reminder(reminder: Reminder, deadline: Deadline) -> str:
    body = f"""
            <p>Hello,</p>
            <p>This is a reminder that a document deadline is approaching.</p>
            <div class="info">
                <h3>{escape(deadline.title)}</h3>
                <p><strong>Due date:</strong> {_format_date(deadline.due_date)}</p>
                <p><strong>Document:</strong> {escape(deadline.document_type)}</p>
                <p><strong>Description:</strong> {escape(deadline.description or "No additional description")}</p>
            </div>
            <p><strong>Please upload your documents before the deadline.</strong></p>"""
    return _render(
        title="Reminder",
        heading="Important reminder",
        body=body,
        link_path="/upload",
        link_text="Upload documents now",
        palette={"header": "#f59e0b", "button": "#dc2626", "info": "#fef3c7"},
    )


def render_deadline_approaching(deadline: Deadline) -> str:
    body = f"""
            <p>Attention!</p>
            <p>The deadline for the following documents is approaching:</p>
            <div class="info">
                <h3>{escape(deadline.title)}</h3>
                <p><strong>Due date:</strong> {_format_date(deadline.due_date)}</p>
                <p><strong>Description:</strong> {escape(deadline.description or "")}</p>
            </div>
            <p><strong>Upload your documents on time to avoid delays.</strong></p>"""
    return _render(
        title="Deadline approaching",
        heading="Deadline approaching",
        body=body,
        link_path="/upload",
        link_text="Upload documents now",
        palette={"header": "#dc2626", "button": "#dc2626", "info": "#fee2e2"},
    )


class EmailDispatcher:
    @staticmethod
    def is_configured() -> bool:
        return bool(settings.smtp_user and settings.smtp_password)

    @staticmethod
    async def send(to_email: str, subject: str, html_content: str, template: str) -> bool:
        """Send one message. Returns False when SMTP is not configured."""
        if not EmailDispatcher.is_configured():
            logger.warning("SMTP not configured, skipping %s email to %s", template, to_email)
            EMAIL_SENDS.labels(template, "skipped").inc()
            return False

        message = MIMEMultipart("alternative")
        message["From"] = settings.from_email
        message["To"] = to_email
        message["Subject"] = subject
        message.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_user,
                password=settings.smtp_password,
                start_tls=settings.smtp_start_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            EMAIL_SENDS.labels(template, "failed").inc()
            raise EmailDeliveryError(f"Failed to send {template} email: {e}") from e

        EMAIL_SENDS.labels(template, "sent").inc()
        logger.info("Sent %s email to %s", template, to_email)
        return True

    @staticmethod
    async def notify_document_uploaded(user: User, document: Document) -> bool:
        return await EmailDispatcher.send(
            user.email,
            f"Document uploaded successfully - {settings.brand_name}",
            render_document_uploaded(user, document),
            "document_uploaded",
        )

    @staticmethod
    async def notify_reminder_fired(
        reminder: Reminder, deadline: Deadline, recipients: list[User]
    ) -> int:
        html = render_reminder(reminder, deadline)
        subject = f"Reminder: {deadline.title} - {settings.brand_name}"
        sent = 0
        for recipient in recipients:
            if await EmailDispatcher.send(recipient.email, subject, html, "reminder"):
                sent += 1
        return sent

    @staticmethod
    async def notify_deadline_approaching(user: User, deadline: Deadline) -> bool:
        return await EmailDispatcher.send(
            user.email,
            f"Deadline approaching: {deadline.title} - {settings.brand_name}",
            render_deadline_approaching(deadline),
            "deadline",
        )


dispatcher = EmailDispatcher()
