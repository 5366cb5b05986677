"""
Tests for the admissions background jobs.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core import scheduler as core_scheduler
from app.modules.admissions import jobs
from app.modules.admissions.models import ApplicationStatus


@pytest.fixture
def session_maker(mock_db):
    """Replace the job session factory with one yielding mock_db."""
    maker = MagicMock()
    maker.return_value.__aenter__.return_value = mock_db
    maker.return_value.__aexit__.return_value = False
    with patch("app.modules.admissions.jobs.async_session_maker", new=maker):
        yield maker


class TestSendExamReminders:
    @pytest.mark.asyncio
    async def test_sends_and_marks(
        self, session_maker, core, mailer, scheduled_application, fixed_now
    ):
        with patch(
            "app.modules.admissions.repository.get_exams_needing_reminder",
            new=AsyncMock(return_value=[scheduled_application]),
        ) as query:
            results = await jobs.send_exam_reminders(core)

        assert results["total_sent"] == 1
        assert results["reminders"][0]["status"] == "sent"
        assert mailer.sent[0]["subject"].startswith("Reminder:")
        assert scheduled_application.exam_reminder_sent_at is not None
        query.assert_awaited_once()
        assert query.await_args.args[1] == fixed_now
        assert query.await_args.args[2] == timedelta(hours=jobs.REMINDER_WINDOW_HOURS)

    @pytest.mark.asyncio
    async def test_mail_failure_still_marks_sent(
        self, session_maker, core, mailer, scheduled_application, fixed_now
    ):
        mailer.fail = True

        with patch(
            "app.modules.admissions.repository.get_exams_needing_reminder",
            new=AsyncMock(return_value=[scheduled_application]),
        ):
            results = await jobs.send_exam_reminders(core)

        assert results["reminders"][0]["status"] == "marked_sent_email_failed"
        assert scheduled_application.exam_reminder_sent_at is not None

    @pytest.mark.asyncio
    async def test_nothing_due(self, session_maker, core, mailer, store, fixed_now):
        with patch(
            "app.modules.admissions.repository.get_exams_needing_reminder",
            new=AsyncMock(return_value=[]),
        ):
            results = await jobs.send_exam_reminders(core)

        assert results == {"reminders": [], "total_sent": 0, "total_errors": 0}
        assert mailer.sent == []


class TestMarkExamsTaken:
    @pytest.mark.asyncio
    async def test_moves_past_exams_and_reports_errors(
        self, session_maker, core, application_factory, fixed_now
    ):
        held = application_factory(
            status=ApplicationStatus.SCHEDULED,
            exam_schedule=datetime(2025, 2, 27, 9, 0, tzinfo=UTC),
        )
        # Decided between the query and the transition
        decided = application_factory(status=ApplicationStatus.APPROVED)

        with patch(
            "app.modules.admissions.repository.get_exams_held_before",
            new=AsyncMock(return_value=[held, decided]),
        ) as query:
            results = await jobs.mark_exams_taken(core)

        assert results["total_marked"] == 1
        assert results["total_errors"] == 1
        assert held.status == ApplicationStatus.EXAM_TAKEN
        assert held.exam_schedule is None
        assert decided.status == ApplicationStatus.APPROVED
        assert query.await_args.args[1] == fixed_now - timedelta(
            hours=core.config.exam_taken_grace_hours
        )


class TestRegistration:
    def test_jobs_are_registered(self):
        with patch.dict(core_scheduler._job_registry, clear=True):
            jobs.register_admissions_jobs()

            assert set(core_scheduler._job_registry) == {
                jobs.JOB_ID_SEND_EXAM_REMINDERS,
                jobs.JOB_ID_MARK_EXAMS_TAKEN,
            }
