"""
Admissions Background Jobs

Scheduled tasks around the entrance exam:
1. Email a reminder to applicants whose exam starts within 24 hours
2. Move applications to exam_taken once their exam time has passed

Design Principles:
- Jobs are idempotent (safe to run multiple times)
- Jobs handle their own database sessions
- Jobs continue processing even if individual items fail
- Status changes go through the lifecycle state machine like any other caller

Schedule:
- Both jobs run hourly
- Jobs can also be triggered manually via the debug endpoints
"""

import logging
from datetime import timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.admissions import helpers, repository
from app.modules.admissions.errors import AdmissionsError
from app.modules.admissions.models import AdmissionApplication, ApplicationStatus
from app.modules.admissions.service import AdmissionsCore, get_admissions_core

logger = logging.getLogger(__name__)

# Job configuration constants
REMINDER_WINDOW_HOURS = 24

# Job IDs for registration and manual triggering
JOB_ID_SEND_EXAM_REMINDERS = "admissions_send_exam_reminders"
JOB_ID_MARK_EXAMS_TAKEN = "admissions_mark_exams_taken"


async def _process_exam_reminder(
    core: AdmissionsCore,
    application: AdmissionApplication,
) -> dict[str, Any]:
    """Send one reminder and mark it sent, even if the email failed."""
    async with async_session_maker() as db:
        email_sent = True
        try:
            await core.notifications.notify_reminder(application)
        except AdmissionsError as e:
            email_sent = False
            # Still mark as sent to prevent retry loops every hour
            logger.error(f"Failed to send exam reminder for {application.id}: {e.message}")

        await repository.mark_exam_reminder_sent(db, application.id, application.exam_schedule)

    return {
        "application_id": str(application.id),
        "status": "sent" if email_sent else "marked_sent_email_failed",
    }


async def send_exam_reminders(core: AdmissionsCore | None = None) -> dict[str, Any]:
    """
    Remind applicants whose exam starts within the next 24 hours.

    Returns:
        Dict with per-application results and totals
    """
    core = core or get_admissions_core()
    now = helpers.utcnow()

    logger.info("Starting exam reminder job")

    results: dict[str, Any] = {
        "reminders": [],
        "total_sent": 0,
        "total_errors": 0,
    }

    async with async_session_maker() as db:
        applications = await repository.get_exams_needing_reminder(
            db, now, timedelta(hours=REMINDER_WINDOW_HOURS)
        )

    logger.info(f"Found {len(applications)} exams needing a reminder")

    for application in applications:
        try:
            result = await _process_exam_reminder(core, application)
            results["reminders"].append(result)
            results["total_sent"] += 1
        except Exception as e:
            logger.error(
                f"Error sending exam reminder for application {application.id}: {e}",
                exc_info=True,
            )
            results["reminders"].append(
                {
                    "application_id": str(application.id),
                    "status": "error",
                    "error": str(e),
                }
            )
            results["total_errors"] += 1

    logger.info(
        f"Exam reminder job completed. "
        f"Sent: {results['total_sent']}, Errors: {results['total_errors']}"
    )

    return results


async def mark_exams_taken(core: AdmissionsCore | None = None) -> dict[str, Any]:
    """
    Move scheduled applications whose exam ended more than
    exam_taken_grace_hours ago to exam_taken.

    Applications that changed status in the meantime are skipped by the
    state machine and reported as errors without stopping the job.

    Returns:
        Dict with per-application results and totals
    """
    core = core or get_admissions_core()
    cutoff = helpers.utcnow() - timedelta(hours=core.config.exam_taken_grace_hours)

    logger.info(f"Starting exam-taken job (exams before {cutoff.isoformat()})")

    results: dict[str, Any] = {
        "applications": [],
        "total_marked": 0,
        "total_errors": 0,
    }

    async with async_session_maker() as db:
        applications = await repository.get_exams_held_before(db, cutoff)

    logger.info(f"Found {len(applications)} exams to mark as taken")

    for application in applications:
        try:
            async with async_session_maker() as db:
                await core.state_machine.transition(
                    db,
                    application.id,
                    ApplicationStatus.EXAM_TAKEN,
                    reason="Exam time passed",
                )
            results["applications"].append(
                {"application_id": str(application.id), "status": "exam_taken"}
            )
            results["total_marked"] += 1
        except Exception as e:
            logger.error(
                f"Error marking exam taken for application {application.id}: {e}",
                exc_info=True,
            )
            results["applications"].append(
                {
                    "application_id": str(application.id),
                    "status": "error",
                    "error": str(e),
                }
            )
            results["total_errors"] += 1

    logger.info(
        f"Exam-taken job completed. "
        f"Marked: {results['total_marked']}, Errors: {results['total_errors']}"
    )

    return results


def register_admissions_jobs() -> None:
    """
    Register the admissions background jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    logger.info("Registering admissions background jobs...")

    register_job(
        job_id=JOB_ID_SEND_EXAM_REMINDERS,
        func=send_exam_reminders,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_SEND_EXAM_REMINDERS} (interval: 1 hour)")

    register_job(
        job_id=JOB_ID_MARK_EXAMS_TAKEN,
        func=mark_exams_taken,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_MARK_EXAMS_TAKEN} (interval: 1 hour)")
