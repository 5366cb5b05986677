"""
Tests for the admission lifecycle state machine.

Covers the transition table, terminal statuses, the audit trail and the
exam_schedule-only-while-scheduled rule.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from app.modules.admissions.config import AdmissionsConfig
from app.modules.admissions.errors import ApplicationNotFoundError, IllegalTransitionError
from app.modules.admissions.lifecycle import VALID_STATUS_TRANSITIONS, LifecycleStateMachine
from app.modules.admissions.models import ApplicationStatus

STAFF_ID = UUID("00000000-0000-0000-0000-000000000001")


class TestStatusTransitions:
    """Tests for the transition table."""

    def test_valid_transitions_from_submitted(self):
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.SUBMITTED]
        assert ApplicationStatus.SCHEDULED in valid
        assert ApplicationStatus.REJECTED in valid
        # Invalid transitions
        assert ApplicationStatus.APPROVED not in valid
        assert ApplicationStatus.EXAM_TAKEN not in valid

    def test_valid_transitions_from_scheduled(self):
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.SCHEDULED]
        assert ApplicationStatus.SCHEDULED in valid
        assert ApplicationStatus.EXAM_TAKEN in valid
        assert ApplicationStatus.APPROVED in valid
        assert ApplicationStatus.REJECTED in valid
        assert ApplicationStatus.SUBMITTED not in valid

    def test_valid_transitions_from_exam_taken(self):
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.EXAM_TAKEN]
        assert valid == {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}

    def test_terminal_states_have_no_transitions(self):
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.APPROVED] == set()
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.REJECTED] == set()

    def test_all_statuses_are_in_transition_map(self):
        for status in ApplicationStatus:
            assert status in VALID_STATUS_TRANSITIONS


class TestConfiguredTerminalStatuses:
    def test_configured_terminal_status_blocks_outgoing_transitions(self):
        config = AdmissionsConfig(
            terminal_statuses=frozenset(
                {
                    ApplicationStatus.APPROVED,
                    ApplicationStatus.REJECTED,
                    ApplicationStatus.EXAM_TAKEN,
                }
            )
        )
        machine = LifecycleStateMachine(config)

        assert machine.is_terminal(ApplicationStatus.EXAM_TAKEN)
        assert not machine.can_transition(ApplicationStatus.EXAM_TAKEN, ApplicationStatus.APPROVED)

    def test_default_terminal_statuses(self, admissions_config):
        machine = LifecycleStateMachine(admissions_config)

        assert machine.is_terminal(ApplicationStatus.APPROVED)
        assert machine.is_terminal(ApplicationStatus.REJECTED)
        assert not machine.is_terminal(ApplicationStatus.SCHEDULED)


class TestApply:
    """Tests for in-place transitions on a locked row."""

    def test_decision_from_scheduled_clears_exam_and_records_history(
        self, admissions_config, transient_application, fixed_now
    ):
        exam_at = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
        application = transient_application(
            status=ApplicationStatus.SCHEDULED, exam_schedule=exam_at
        )
        machine = LifecycleStateMachine(admissions_config)

        machine.apply(
            application, ApplicationStatus.REJECTED, actor_id=STAFF_ID, reason="Incomplete"
        )

        assert application.status == ApplicationStatus.REJECTED
        assert application.exam_schedule is None
        assert application.decided_at == fixed_now
        assert application.decided_by == STAFF_ID
        assert application.decision_reason == "Incomplete"

        entry = application.status_history[-1]
        assert entry["from_status"] == "scheduled"
        assert entry["to_status"] == "rejected"
        assert entry["exam_schedule"] == exam_at.isoformat()
        assert entry["changed_by"] == str(STAFF_ID)

    def test_exam_taken_does_not_set_decision_fields(
        self, admissions_config, transient_application, fixed_now
    ):
        application = transient_application(
            status=ApplicationStatus.SCHEDULED,
            exam_schedule=datetime(2025, 2, 28, 9, 0, tzinfo=UTC),
        )

        LifecycleStateMachine(admissions_config).apply(application, ApplicationStatus.EXAM_TAKEN)

        assert application.status == ApplicationStatus.EXAM_TAKEN
        assert application.exam_schedule is None
        assert application.decided_at is None

    def test_scheduled_without_exam_date_is_rejected(
        self, admissions_config, transient_application
    ):
        application = transient_application()

        with pytest.raises(IllegalTransitionError):
            LifecycleStateMachine(admissions_config).apply(application, ApplicationStatus.SCHEDULED)

        assert application.status == ApplicationStatus.SUBMITTED
        assert application.status_history == []

    def test_illegal_transition_leaves_record_unchanged(
        self, admissions_config, transient_application
    ):
        application = transient_application()

        with pytest.raises(IllegalTransitionError) as exc_info:
            LifecycleStateMachine(admissions_config).apply(application, ApplicationStatus.APPROVED)

        assert exc_info.value.status_code == 409
        assert exc_info.value.current_status == "submitted"
        assert exc_info.value.new_status == "approved"
        assert application.status == ApplicationStatus.SUBMITTED
        assert application.decided_at is None
        assert application.status_history == []


class TestTransition:
    """Tests for committed transitions through the record store."""

    @pytest.mark.asyncio
    async def test_reject_submitted_application(
        self, mock_db, core, submitted_application, fixed_now
    ):
        updated = await core.state_machine.transition(
            mock_db,
            submitted_application.id,
            ApplicationStatus.REJECTED,
            actor_id=STAFF_ID,
        )

        assert updated.status == ApplicationStatus.REJECTED
        assert len(updated.status_history) == 1

    @pytest.mark.asyncio
    async def test_approve_scheduled_then_reschedule_fails(
        self, mock_db, core, scheduled_application, fixed_now
    ):
        updated = await core.state_machine.transition(
            mock_db, scheduled_application.id, ApplicationStatus.APPROVED
        )
        assert updated.status == ApplicationStatus.APPROVED

        with pytest.raises(IllegalTransitionError):
            await core.scheduler.schedule(
                mock_db, scheduled_application.id, "2025-03-20T09:00:00Z"
            )

        assert updated.status == ApplicationStatus.APPROVED
        assert updated.exam_schedule is None

    @pytest.mark.asyncio
    async def test_direct_transition_to_scheduled_is_rejected(
        self, mock_db, core, submitted_application
    ):
        with pytest.raises(IllegalTransitionError):
            await core.state_machine.transition(
                mock_db, submitted_application.id, ApplicationStatus.SCHEDULED
            )

        assert submitted_application.status == ApplicationStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_terminal_status_rejects_every_target(self, mock_db, core, application_factory):
        application = application_factory(status=ApplicationStatus.REJECTED)

        for target in ApplicationStatus:
            with pytest.raises(IllegalTransitionError):
                await core.state_machine.transition(mock_db, application.id, target)

        assert application.status == ApplicationStatus.REJECTED

    @pytest.mark.asyncio
    async def test_unknown_application_raises_not_found(self, mock_db, core, store):
        with pytest.raises(ApplicationNotFoundError):
            await core.state_machine.transition(mock_db, uuid4(), ApplicationStatus.REJECTED)
