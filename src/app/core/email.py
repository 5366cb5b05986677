"""
Email Service using Resend

Mail transport plus the HTML templates for the admissions flow.
Transport failures are raised as MailTransportError so callers can decide
what a failed send means for them; nothing here retries.
"""

import asyncio
import logging
import uuid
from html import escape
from typing import Protocol

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

SENDER_NAME = "PTC Admission"

_BASE_STYLE = """
            body { font-family: Arial, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; }
            .banner { background: linear-gradient(135deg, #2c5530 0%, #4a7c59 100%); padding: 20px; color: white; text-align: center; }
            .banner h2 { margin: 0; }
            .banner p { margin: 0; opacity: 0.9; }
            .content { padding: 20px; background: #f9f9f9; }
            .summary-box { background-color: #ffffff; border: 1px solid #e5e7eb; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .summary-box ul { margin: 8px 0 0 0; padding-left: 20px; }
            .footer { margin-top: 20px; color: #666; font-size: 12px; }
"""


class MailTransportError(Exception):
    """Raised when the mail provider rejects or fails to accept a message."""


class Mailer(Protocol):
    """Contract for sending one HTML email and returning the provider message id."""

    async def send(self, to: str, subject: str, html_body: str) -> str: ...


class ResendMailer:
    """Mailer backed by the Resend API."""

    def __init__(self, api_key: str | None, sender: str, timeout_seconds: float):
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout_seconds

    async def send(self, to: str, subject: str, html_body: str) -> str:
        """
        Send an email using Resend.

        Args:
            to: Recipient email address
            subject: Email subject line
            html_body: HTML content of the email

        Returns:
            The provider message id

        Raises:
            MailTransportError: If the provider call fails or times out
        """
        if not self._api_key:
            message_id = f"logged-{uuid.uuid4()}"
            logger.warning("RESEND_API_KEY not set - logging email instead of sending")
            logger.info(f"EMAIL TO: {to} | SUBJECT: {subject} | ID: {message_id}")
            return message_id

        resend.api_key = self._api_key
        params: resend.Emails.SendParams = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }

        try:
            # Run sync Resend call in thread pool to avoid blocking event loop
            email = await asyncio.wait_for(
                asyncio.to_thread(resend.Emails.send, params),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            logger.error(f"Email to {to} timed out after {self._timeout}s")
            raise MailTransportError(f"Mail provider timed out after {self._timeout}s") from e
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e}")
            raise MailTransportError(str(e)) from e

        logger.info(f"Email sent successfully to {to}, id: {email['id']}")
        return email["id"]


_mailer: ResendMailer | None = None


def get_mailer() -> ResendMailer:
    """Return the process-wide Resend mailer."""
    global _mailer
    if _mailer is None:
        _mailer = ResendMailer(
            api_key=settings.resend_api_key,
            sender=settings.email_from,
            timeout_seconds=settings.mail_timeout_seconds,
        )
    return _mailer


def _wrap(subtitle: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <div class="banner">
                <h2>{SENDER_NAME}</h2>
                <p>{subtitle}</p>
            </div>
            <div class="content">
{body}
                <p class="footer">PTC Admission System</p>
            </div>
        </div>
    </body>
    </html>
    """


def render_application_received(
    applicant_name: str,
    application_id: str,
    desired_program: str,
) -> tuple[str, str]:
    """Build (subject, html) for the submission acknowledgement."""
    # Escape user inputs to prevent XSS
    safe_name = escape(applicant_name)
    safe_program = escape(desired_program)
    safe_id = escape(application_id)

    body = f"""
                <p>Hi <strong>{safe_name}</strong>,</p>
                <p>We have received your application for <strong>{safe_program}</strong>.
                Your Application ID is <strong>{safe_id}</strong>.</p>
                <p>We will notify you of the exam schedule shortly.</p>
"""
    return "PTC Admission Application Received", _wrap("Application Confirmation", body)


def render_exam_schedule(
    applicant_name: str,
    exam_when: str,
    desired_program: str,
    year_level: str | None,
    status_url: str,
) -> tuple[str, str]:
    """Build (subject, html) for the exam schedule notification."""
    safe_name = escape(applicant_name)
    safe_when = escape(exam_when)
    safe_program = escape(desired_program)
    safe_year = escape(year_level or "N/A")
    safe_url = escape(status_url)

    body = f"""
                <p>Hi <strong>{safe_name}</strong>,</p>
                <p>Your entrance exam is scheduled for <strong>{safe_when}</strong>.</p>
                <div class="summary-box">
                    <p><strong>Exam Details:</strong></p>
                    <ul>
                        <li><strong>Program:</strong> {safe_program}</li>
                        <li><strong>Year Level:</strong> {safe_year}</li>
                        <li><strong>Date &amp; Time:</strong> {safe_when}</li>
                    </ul>
                </div>
                <p>Please arrive on time and bring the required documents.</p>
                <p>You can check your application status at
                <a href="{safe_url}">{safe_url}</a>.</p>
                <p>Good luck!</p>
"""
    return "Exam Schedule - PTC Admission", _wrap("Exam Schedule Notification", body)


def render_exam_reminder(
    applicant_name: str,
    exam_when: str,
    desired_program: str,
) -> tuple[str, str]:
    """Build (subject, html) for the day-before exam reminder."""
    safe_name = escape(applicant_name)
    safe_when = escape(exam_when)
    safe_program = escape(desired_program)

    body = f"""
                <p>Hi <strong>{safe_name}</strong>,</p>
                <p>This is a reminder that your entrance exam for <strong>{safe_program}</strong>
                is on <strong>{safe_when}</strong>.</p>
                <p>Please arrive at least 30 minutes early and bring a valid ID.</p>
"""
    return "Reminder: Your PTC entrance exam is coming up", _wrap("Exam Reminder", body)
