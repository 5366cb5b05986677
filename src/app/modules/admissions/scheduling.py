"""
Exam Scheduler

Assigns or reassigns an application's entrance-exam date-time and drives
the matching transition to `scheduled` through the lifecycle state machine.
Notifying the applicant is left to the caller, after the schedule is
committed.
"""

import logging
from datetime import datetime, time, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.admissions import helpers, repository
from app.modules.admissions.config import AdmissionsConfig
from app.modules.admissions.errors import ApplicationNotFoundError, InvalidScheduleError
from app.modules.admissions.lifecycle import LifecycleStateMachine
from app.modules.admissions.models import AdmissionApplication, ApplicationStatus

logger = logging.getLogger(__name__)


class ExamScheduler:
    """Schedules entrance exams for admission applications."""

    def __init__(self, config: AdmissionsConfig, state_machine: LifecycleStateMachine):
        self.config = config
        self.state_machine = state_machine

    def default_exam_datetime(self, now: datetime | None = None) -> datetime:
        """
        Propose the default exam slot: `default_exam_lead_days` from `now`
        at `default_exam_hour` local time, returned in UTC.
        """
        now = now or helpers.utcnow()
        local_now = now.astimezone(self.config.zone)
        local_day = (local_now + timedelta(days=self.config.default_exam_lead_days)).date()
        local_slot = datetime.combine(
            local_day, time(hour=self.config.default_exam_hour), tzinfo=self.config.zone
        )
        return helpers.parse_exam_datetime(local_slot, self.config.zone)

    def parse(self, exam_datetime: datetime | str) -> datetime:
        """
        Normalize an exam date-time to aware UTC.

        Raises:
            InvalidScheduleError: If the value cannot be parsed
        """
        try:
            return helpers.parse_exam_datetime(exam_datetime, self.config.zone)
        except (TypeError, ValueError) as e:
            raise InvalidScheduleError(f"Invalid exam date-time: {exam_datetime!r}") from e

    async def schedule(
        self,
        db: AsyncSession,
        application_id: UUID,
        exam_datetime: datetime | str,
        *,
        actor_id: UUID | None = None,
    ) -> AdmissionApplication:
        """Schedule or reschedule the exam; see schedule_with_outcome."""
        application, _changed = await self.schedule_with_outcome(
            db, application_id, exam_datetime, actor_id=actor_id
        )
        return application

    async def schedule_with_outcome(
        self,
        db: AsyncSession,
        application_id: UUID,
        exam_datetime: datetime | str,
        *,
        actor_id: UUID | None = None,
    ) -> tuple[AdmissionApplication, bool]:
        """
        Schedule or reschedule the exam for an application.

        Scheduling the instant that is already set is a no-op. A new instant
        on a scheduled application replaces the old one and resets the
        reminder marker so the reminder job picks it up again.

        Args:
            db: Database session
            application_id: UUID of the application
            exam_datetime: datetime or ISO-8601 string; naive values are
                read in the configured time zone
            actor_id: Staff member scheduling the exam, if any

        Returns:
            Tuple of (updated application, changed). `changed` is False when
            the instant was already set; it is decided under the row lock.

        Raises:
            InvalidScheduleError: If the date-time is malformed or in the past
            ApplicationNotFoundError: If the application doesn't exist
            IllegalTransitionError: If the current status cannot be scheduled
            AdapterUnavailableError: If the store is unavailable
        """
        exam_at = self.parse(exam_datetime)
        now = helpers.utcnow()

        if exam_at < now:
            raise InvalidScheduleError(
                f"Exam date-time {exam_at.isoformat()} is in the past"
            )

        outcome = {"changed": False}

        def _patch(application: AdmissionApplication) -> None:
            outcome["changed"] = False
            if (
                application.status == ApplicationStatus.SCHEDULED
                and application.exam_schedule == exam_at
            ):
                logger.info(f"Exam for application {application.id} already at {exam_at}")
                return

            self.state_machine.apply(
                application,
                ApplicationStatus.SCHEDULED,
                exam_schedule=exam_at,
                actor_id=actor_id,
                now=now,
            )
            application.exam_reminder_sent_at = None
            outcome["changed"] = True

        updated = await repository.update_atomic(db, application_id, _patch)

        if updated is None:
            logger.warning(f"Application not found for scheduling: {application_id}")
            raise ApplicationNotFoundError(application_id)

        logger.info(f"Exam scheduled for application {application_id} at {exam_at.isoformat()}")
        return updated, outcome["changed"]
