"""
Tests for the admissions record store adapter.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from app.modules.admissions import repository
from app.modules.admissions.errors import AdapterUnavailableError, IllegalTransitionError
from app.modules.admissions.models import ApplicationStatus
from app.modules.admissions.schemas import ApplicationCreate


def _locked_row_result(application):
    result = MagicMock()
    result.scalar_one_or_none.return_value = application
    return result


class TestUpdateAtomic:
    @pytest.mark.asyncio
    async def test_patch_is_committed(self, mock_db, transient_application):
        application = transient_application()
        mock_db.execute.return_value = _locked_row_result(application)

        def patch(row):
            row.contact_number = "09998887777"

        updated = await repository.update_atomic(mock_db, application.id, patch)

        assert updated is application
        assert application.contact_number == "09998887777"
        mock_db.commit.assert_awaited_once()
        mock_db.refresh.assert_awaited_once_with(application)
        mock_db.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_row_is_read_with_for_update(self, mock_db, transient_application):
        application = transient_application()
        mock_db.execute.return_value = _locked_row_result(application)

        await repository.update_atomic(mock_db, application.id, MagicMock())

        stmt = mock_db.execute.await_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql
        assert "admission_applications" in sql

    @pytest.mark.asyncio
    async def test_failing_patch_rolls_back_and_propagates(self, mock_db, transient_application):
        application = transient_application()
        mock_db.execute.return_value = _locked_row_result(application)

        def patch(row):
            raise IllegalTransitionError("submitted", "approved")

        with pytest.raises(IllegalTransitionError):
            await repository.update_atomic(mock_db, application.id, patch)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_row_returns_none(self, mock_db, transient_application):
        mock_db.execute.return_value = _locked_row_result(None)
        patch = MagicMock()

        result = await repository.update_atomic(mock_db, transient_application().id, patch)

        assert result is None
        patch.assert_not_called()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_failure_is_adapter_unavailable(self, mock_db, transient_application):
        mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

        with pytest.raises(AdapterUnavailableError) as exc_info:
            await repository.update_atomic(mock_db, transient_application().id, MagicMock())

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_is_adapter_unavailable(self, mock_db, transient_application):
        mock_db.get.side_effect = TimeoutError()

        with pytest.raises(AdapterUnavailableError):
            await repository.get_by_id(mock_db, transient_application().id)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_starts_submitted(self, mock_db):
        data = ApplicationCreate(
            full_name="Ana Reyes",
            email="ana.reyes@example.com",
            contact_number="09171112222",
            desired_program="BS Accountancy",
        )

        application = await repository.create(mock_db, data)

        assert application.status == ApplicationStatus.SUBMITTED
        assert application.exam_schedule is None
        assert application.documents == {}
        mock_db.add.assert_called_once_with(application)
        mock_db.commit.assert_awaited_once()


class TestNotificationMarkers:
    @pytest.mark.asyncio
    async def test_reminder_marker_skips_moved_exam(self, mock_db, store, application_factory):
        application = application_factory(
            status=ApplicationStatus.SCHEDULED,
            exam_schedule=datetime(2025, 3, 17, 9, 0, tzinfo=UTC),
        )

        await repository.mark_exam_reminder_sent(
            mock_db,
            application.id,
            datetime(2025, 3, 10, 9, 0, tzinfo=UTC),
            sent_at=datetime(2025, 3, 9, 10, 0, tzinfo=UTC),
        )

        assert application.exam_reminder_sent_at is None

    @pytest.mark.asyncio
    async def test_reminder_marker_for_current_exam(self, mock_db, store, scheduled_application):
        sent_at = datetime(2025, 3, 9, 10, 0, tzinfo=UTC)

        await repository.mark_exam_reminder_sent(
            mock_db, scheduled_application.id, scheduled_application.exam_schedule, sent_at
        )

        assert scheduled_application.exam_reminder_sent_at == sent_at
