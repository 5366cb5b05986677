"""
Tests for the admissions service layer.

Covers notify-after-commit scheduling, applicant email verification and
the best-effort submission acknowledgement.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from app.modules.admissions import service
from app.modules.admissions.errors import (
    ApplicationNotFoundError,
    InvalidEmailError,
    InvalidNotificationInputError,
)
from app.modules.admissions.models import ApplicationStatus
from app.modules.admissions.schemas import ApplicationCreate

STAFF_ID = UUID("00000000-0000-0000-0000-000000000001")


class TestAdminScheduleExam:
    @pytest.mark.asyncio
    async def test_schedule_then_notify(
        self, mock_db, core, mailer, submitted_application, fixed_now
    ):
        application, result = await service.admin_schedule_exam(
            mock_db, core, submitted_application.id, "2025-03-10T09:00:00Z", actor_id=STAFF_ID
        )

        assert application.status == ApplicationStatus.SCHEDULED
        assert result.success is True
        assert len(mailer.sent) == 1
        assert application.last_notification["success"] is True
        assert application.status_history[-1]["changed_by"] == str(STAFF_ID)

    @pytest.mark.asyncio
    async def test_mail_failure_keeps_schedule(
        self, mock_db, core, mailer, submitted_application, fixed_now
    ):
        mailer.fail = True

        application, result = await service.admin_schedule_exam(
            mock_db, core, submitted_application.id, "2025-03-10T09:00:00Z"
        )

        assert application.status == ApplicationStatus.SCHEDULED
        assert application.exam_schedule == datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
        assert result.success is False
        assert "SMTP relay refused connection" in result.error
        assert application.last_notification["success"] is False

    @pytest.mark.asyncio
    async def test_same_instant_sends_no_second_email(
        self, mock_db, core, mailer, scheduled_application, fixed_now
    ):
        application, result = await service.admin_schedule_exam(
            mock_db, core, scheduled_application.id, "2025-03-10T09:00:00Z"
        )

        assert result is None
        assert mailer.sent == []
        assert application.status_history == []

    @pytest.mark.asyncio
    async def test_reschedule_sends_new_email(
        self, mock_db, core, mailer, scheduled_application, fixed_now
    ):
        _, result = await service.admin_schedule_exam(
            mock_db, core, scheduled_application.id, "2025-03-17T09:00:00Z"
        )

        assert result.success is True
        assert "March 17, 2025" in mailer.sent[0]["html"]

    @pytest.mark.asyncio
    async def test_no_date_uses_default_slot(
        self, mock_db, core, submitted_application, fixed_now
    ):
        application, _ = await service.admin_schedule_exam(
            mock_db, core, submitted_application.id, None
        )

        # Seven days out at 09:00 Manila time
        assert application.exam_schedule == datetime(2025, 3, 8, 1, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_invalid_email_returns_failed_result_after_commit(
        self, mock_db, core, mailer, application_factory, fixed_now
    ):
        application = application_factory(email="broken")

        updated, result = await service.admin_schedule_exam(
            mock_db, core, application.id, "2025-03-10T09:00:00Z"
        )

        assert updated.status == ApplicationStatus.SCHEDULED
        assert updated.exam_schedule == datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
        assert result.success is False
        assert result.recipient == "broken"
        assert "invalid email" in result.error
        assert result.attempted_at == fixed_now
        assert updated.last_notification["success"] is False
        assert mailer.sent == []

    @pytest.mark.asyncio
    async def test_schedule_committed_concurrently_sends_no_email(
        self, mock_db, core, mailer, store, submitted_application, fixed_now
    ):
        exam_at = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)

        async def update_after_other_request(db, id, patch):
            # Another request commits the same instant before this lock is taken
            if submitted_application.status == ApplicationStatus.SUBMITTED:
                submitted_application.status = ApplicationStatus.SCHEDULED
                submitted_application.exam_schedule = exam_at
            return await store.update_atomic(db, id, patch)

        with patch(
            "app.modules.admissions.repository.update_atomic",
            new=AsyncMock(side_effect=update_after_other_request),
        ):
            application, result = await service.admin_schedule_exam(
                mock_db, core, submitted_application.id, "2025-03-10T09:00:00Z"
            )

        assert result is None
        assert mailer.sent == []
        assert application.exam_schedule == exam_at
        assert application.status_history == []


class TestResendNotification:
    @pytest.mark.asyncio
    async def test_resend_for_scheduled_application(
        self, mock_db, core, mailer, scheduled_application, fixed_now
    ):
        result = await service.admin_resend_schedule_notification(
            mock_db, core, scheduled_application.id
        )

        assert result.success is True
        assert len(mailer.sent) == 1

    @pytest.mark.asyncio
    async def test_resend_without_schedule(self, mock_db, core, submitted_application, fixed_now):
        with pytest.raises(InvalidNotificationInputError):
            await service.admin_resend_schedule_notification(
                mock_db, core, submitted_application.id
            )

    @pytest.mark.asyncio
    async def test_resend_with_invalid_email_records_failure(
        self, mock_db, core, mailer, application_factory, fixed_now
    ):
        application = application_factory(
            email="broken",
            status=ApplicationStatus.SCHEDULED,
            exam_schedule=datetime(2025, 3, 10, 9, 0, tzinfo=UTC),
        )

        result = await service.admin_resend_schedule_notification(mock_db, core, application.id)

        assert result.success is False
        assert application.last_notification["recipient"] == "broken"
        assert mailer.sent == []

    @pytest.mark.asyncio
    async def test_resend_unknown_application(self, mock_db, core, store):
        with pytest.raises(ApplicationNotFoundError):
            await service.admin_resend_schedule_notification(mock_db, core, uuid4())


class TestApplicantAccess:
    @pytest.mark.asyncio
    async def test_status_with_matching_email_is_case_insensitive(
        self, mock_db, scheduled_application
    ):
        status = await service.get_application_status(
            mock_db, scheduled_application.id, "  Maria.Santos@Example.com "
        )

        assert status.status == ApplicationStatus.SCHEDULED
        assert status.status_label == "Exam Scheduled"
        assert status.exam_schedule == datetime(2025, 3, 10, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_status_with_wrong_email(self, mock_db, submitted_application):
        with pytest.raises(InvalidEmailError) as exc_info:
            await service.get_application_status(
                mock_db, submitted_application.id, "someone.else@example.com"
            )

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_status_unknown_application(self, mock_db, store):
        with pytest.raises(ApplicationNotFoundError):
            await service.get_application_status(mock_db, uuid4(), "maria.santos@example.com")

    @pytest.mark.asyncio
    async def test_upload_requires_matching_email(
        self, mock_db, core, blob_store, submitted_application
    ):
        with pytest.raises(InvalidEmailError):
            await service.upload_document(
                mock_db,
                core,
                submitted_application.id,
                "intruder@example.com",
                "form_138",
                b"data",
                "application/pdf",
            )

        assert blob_store.blobs == {}

    @pytest.mark.asyncio
    async def test_upload_and_remove(self, mock_db, core, submitted_application, fixed_now):
        await service.upload_document(
            mock_db,
            core,
            submitted_application.id,
            "maria.santos@example.com",
            "form_138",
            b"data",
            "application/pdf",
        )
        assert "form_138" in submitted_application.documents

        await service.remove_document(
            mock_db, core, submitted_application.id, "maria.santos@example.com", "form_138"
        )
        assert submitted_application.documents == {}


class TestSubmitApplication:
    @pytest.fixture
    def application_data(self):
        return ApplicationCreate(
            full_name="Juan Dela Cruz",
            email="juan.delacruz@example.com",
            contact_number="09181234567",
            desired_program="BS Computer Science",
            year_level="1st Year",
        )

    @pytest.mark.asyncio
    async def test_submit_sends_acknowledgement(
        self, mock_db, core, mailer, application_data, transient_application, fixed_now
    ):
        created = transient_application(email="juan.delacruz@example.com")

        with patch(
            "app.modules.admissions.repository.create", new=AsyncMock(return_value=created)
        ):
            application = await service.submit_application(mock_db, core, application_data)

        assert application is created
        assert mailer.sent[0]["to"] == "juan.delacruz@example.com"

    @pytest.mark.asyncio
    async def test_acknowledgement_failure_does_not_fail_submission(
        self, mock_db, core, mailer, application_data, transient_application, fixed_now
    ):
        mailer.fail = True
        created = transient_application(email="juan.delacruz@example.com")

        with patch(
            "app.modules.admissions.repository.create", new=AsyncMock(return_value=created)
        ):
            application = await service.submit_application(mock_db, core, application_data)

        assert application.status == ApplicationStatus.SUBMITTED


class TestAdminTransition:
    @pytest.mark.asyncio
    async def test_approve_after_exam(self, mock_db, core, application_factory, fixed_now):
        application = application_factory(status=ApplicationStatus.EXAM_TAKEN)

        updated = await service.admin_transition(
            mock_db,
            core,
            application.id,
            ApplicationStatus.APPROVED,
            actor_id=STAFF_ID,
            reason="Passed the entrance exam",
        )

        assert updated.status == ApplicationStatus.APPROVED
        assert updated.decided_by == STAFF_ID
        assert updated.decision_reason == "Passed the entrance exam"
