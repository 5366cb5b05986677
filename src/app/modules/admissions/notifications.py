"""
Notification Dispatcher

Formats applicant emails and hands them to the mail adapter. One call sends
exactly one message; there is no retry and no deduplication here.
Dispatch never mutates the application.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from app.core.email import (
    Mailer,
    MailTransportError,
    render_application_received,
    render_exam_reminder,
    render_exam_schedule,
)
from app.modules.admissions import helpers
from app.modules.admissions.config import AdmissionsConfig
from app.modules.admissions.errors import InvalidNotificationInputError, NotificationFailedError
from app.modules.admissions.models import AdmissionApplication
from app.modules.admissions.schemas import DispatchResult

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends admission emails through a Mailer."""

    def __init__(self, config: AdmissionsConfig, mailer: Mailer, frontend_url: str = ""):
        self.config = config
        self.mailer = mailer
        self.frontend_url = frontend_url.rstrip("/")

    def status_url(self, application: AdmissionApplication) -> str:
        return f"{self.frontend_url}/admissions/status/{application.id}"

    def _recipient(self, application: AdmissionApplication) -> str:
        try:
            return validate_email(application.email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise InvalidNotificationInputError(
                f"Application {application.id} has an invalid email address: {e}"
            ) from e

    def _require_schedule(self, application: AdmissionApplication) -> None:
        if application.exam_schedule is None:
            raise InvalidNotificationInputError(
                f"Application {application.id} has no exam schedule to notify about"
            )

    async def _send(self, recipient: str, subject: str, html_body: str) -> DispatchResult:
        try:
            message_id = await self.mailer.send(recipient, subject, html_body)
        except MailTransportError as e:
            logger.error(f"Notification to {recipient} failed: {e}")
            result = DispatchResult(
                success=False,
                error=str(e),
                recipient=recipient,
                attempted_at=helpers.utcnow(),
            )
            raise NotificationFailedError(e, result) from e

        return DispatchResult(
            success=True,
            message_id=message_id,
            recipient=recipient,
            attempted_at=helpers.utcnow(),
        )

    async def notify_schedule(self, application: AdmissionApplication) -> DispatchResult:
        """
        Send the exam schedule confirmation.

        Raises:
            InvalidNotificationInputError: If the email is invalid or no exam is scheduled
            NotificationFailedError: If the mail transport fails; carries the
                failed DispatchResult
        """
        recipient = self._recipient(application)
        self._require_schedule(application)

        subject, html_body = render_exam_schedule(
            applicant_name=application.full_name,
            exam_when=helpers.format_exam_datetime(application.exam_schedule, self.config.zone),
            desired_program=application.desired_program,
            year_level=application.year_level,
            status_url=self.status_url(application),
        )
        result = await self._send(recipient, subject, html_body)
        logger.info(f"Exam schedule sent for application {application.id}")
        return result

    async def notify_received(self, application: AdmissionApplication) -> DispatchResult:
        """
        Acknowledge a new submission.

        Raises:
            InvalidNotificationInputError: If the email is invalid
            NotificationFailedError: If the mail transport fails
        """
        recipient = self._recipient(application)
        subject, html_body = render_application_received(
            applicant_name=application.full_name,
            application_id=str(application.id),
            desired_program=application.desired_program,
        )
        return await self._send(recipient, subject, html_body)

    async def notify_reminder(self, application: AdmissionApplication) -> DispatchResult:
        """
        Remind the applicant of an upcoming exam.

        Raises:
            InvalidNotificationInputError: If the email is invalid or no exam is scheduled
            NotificationFailedError: If the mail transport fails
        """
        recipient = self._recipient(application)
        self._require_schedule(application)

        subject, html_body = render_exam_reminder(
            applicant_name=application.full_name,
            exam_when=helpers.format_exam_datetime(application.exam_schedule, self.config.zone),
            desired_program=application.desired_program,
        )
        return await self._send(recipient, subject, html_body)
