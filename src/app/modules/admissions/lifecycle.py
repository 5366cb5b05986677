"""
Admission Lifecycle State Machine

The single authority over an application's status. Every caller (admin
endpoints, the exam scheduler, background jobs) changes status through
this module, so an illegal transition is rejected the same way no matter
where it comes from.

Transitions:
    submitted  -> scheduled       exam scheduled (scheduler only)
    scheduled  -> scheduled       exam rescheduled (scheduler only)
    scheduled  -> exam_taken      exam outcome recorded
    scheduled  -> approved        administrative decision
    scheduled  -> rejected        administrative decision
    exam_taken -> approved        administrative decision
    exam_taken -> rejected        administrative decision
    submitted  -> rejected        decision without scheduling

Statuses listed in the configured terminal set have no outgoing transitions.

exam_schedule is present exactly while the status is `scheduled`. Leaving
`scheduled` clears it; the old value stays in status_history for audit.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.admissions import helpers, repository
from app.modules.admissions.config import AdmissionsConfig
from app.modules.admissions.errors import ApplicationNotFoundError, IllegalTransitionError
from app.modules.admissions.models import AdmissionApplication, ApplicationStatus

logger = logging.getLogger(__name__)

VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: frozenset(
        {
            ApplicationStatus.SCHEDULED,
            ApplicationStatus.REJECTED,
        }
    ),
    ApplicationStatus.SCHEDULED: frozenset(
        {
            ApplicationStatus.SCHEDULED,  # Reschedule
            ApplicationStatus.EXAM_TAKEN,
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
        }
    ),
    ApplicationStatus.EXAM_TAKEN: frozenset(
        {
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
        }
    ),
    # Terminal states - no transitions allowed
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

DECISION_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})

# Statuses from which the exam scheduler may (re)schedule
SCHEDULABLE_STATUSES = frozenset({ApplicationStatus.SUBMITTED, ApplicationStatus.SCHEDULED})


class LifecycleStateMachine:
    """Validates and commits status transitions."""

    def __init__(self, config: AdmissionsConfig):
        self.config = config

    def allowed_targets(self, current: ApplicationStatus) -> frozenset[ApplicationStatus]:
        """Statuses reachable from `current` under the configured terminal set."""
        if current in self.config.terminal_statuses:
            return frozenset()
        return VALID_STATUS_TRANSITIONS.get(current, frozenset())

    def is_terminal(self, status: ApplicationStatus) -> bool:
        return not self.allowed_targets(status)

    def can_transition(self, current: ApplicationStatus, target: ApplicationStatus) -> bool:
        return target in self.allowed_targets(current)

    def ensure_transition(self, current: ApplicationStatus, target: ApplicationStatus) -> None:
        """
        Raises:
            IllegalTransitionError: If (current, target) is not in the table
        """
        if not self.can_transition(current, target):
            allowed = sorted(status.value for status in self.allowed_targets(current))
            detail = f"Allowed: {allowed}." if allowed else f"'{current.value}' is final."
            raise IllegalTransitionError(current.value, target.value, detail)

    def apply(
        self,
        application: AdmissionApplication,
        to_status: ApplicationStatus,
        *,
        exam_schedule: datetime | None = None,
        actor_id: UUID | None = None,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        Move a locked application row to `to_status`.

        Must be called from inside a repository.update_atomic patch. All
        checks run before any field is touched, so a rejected transition
        leaves the row exactly as it was read.

        Raises:
            IllegalTransitionError: If the transition is not allowed, or if
                `scheduled` is requested without an exam date
        """
        from_status = application.status
        self.ensure_transition(from_status, to_status)

        if to_status == ApplicationStatus.SCHEDULED and exam_schedule is None:
            raise IllegalTransitionError(
                from_status.value,
                to_status.value,
                "Scheduling requires an exam date; use the exam scheduler.",
            )

        now = now or helpers.utcnow()
        audited_exam = exam_schedule if to_status == ApplicationStatus.SCHEDULED else None
        audited_exam = audited_exam or application.exam_schedule

        application.status = to_status
        application.exam_schedule = (
            exam_schedule if to_status == ApplicationStatus.SCHEDULED else None
        )

        if to_status in DECISION_STATUSES:
            application.decided_at = now
            application.decided_by = actor_id
            application.decision_reason = reason

        # Reassign so the JSONB column is flagged dirty
        application.status_history = [
            *(application.status_history or []),
            {
                "from_status": from_status.value,
                "to_status": to_status.value,
                "exam_schedule": helpers.isoformat_or_none(audited_exam),
                "changed_at": now.isoformat(),
                "changed_by": str(actor_id) if actor_id else None,
                "reason": reason,
            },
        ]

        logger.info(
            f"Application {application.id} status {from_status.value} -> {to_status.value}"
        )

    async def transition(
        self,
        db: AsyncSession,
        application_id: UUID,
        to_status: ApplicationStatus,
        *,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> AdmissionApplication:
        """
        Validate and commit a status change.

        Args:
            db: Database session
            application_id: UUID of the application
            to_status: Target status
            actor_id: Staff member making the change, if any
            reason: Free-text reason stored with the change

        Returns:
            The updated application

        Raises:
            ApplicationNotFoundError: If the application doesn't exist
            IllegalTransitionError: If the transition is not allowed
            AdapterUnavailableError: If the store is unavailable
        """

        def _patch(application: AdmissionApplication) -> None:
            self.apply(application, to_status, actor_id=actor_id, reason=reason)

        updated = await repository.update_atomic(db, application_id, _patch)

        if updated is None:
            logger.warning(f"Application not found for transition: {application_id}")
            raise ApplicationNotFoundError(application_id)

        return updated
