"""
Admissions Repository

Record store adapter for admission applications.
All operations are async and follow the repository pattern: only database
access lives here, the lifecycle rules live in the lifecycle module.

Design Principles:
- All queries are parameterized (no SQL injection)
- Every mutation goes through update_atomic, which reads the row under
  SELECT ... FOR UPDATE, applies a patch and commits in one transaction
- Connectivity failures and timeouts surface as AdapterUnavailableError
- Timezone-aware datetime handling (UTC)
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, asc, case, desc, func, or_, select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import AdapterUnavailableError
from .models import AdmissionApplication, ApplicationStatus
from .schemas import ApplicationCreate

Patch = Callable[[AdmissionApplication], None]


@contextmanager
def _store_guard() -> Iterator[None]:
    """Translate connectivity failures into AdapterUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError, TimeoutError) as e:
        raise AdapterUnavailableError("record store", e) from e


async def create(db: AsyncSession, data: ApplicationCreate) -> AdmissionApplication:
    """Create a new application in the submitted state."""

    new_application = AdmissionApplication(
        full_name=data.full_name,
        email=str(data.email),
        contact_number=data.contact_number,
        desired_program=data.desired_program,
        year_level=data.year_level,
        status=ApplicationStatus.SUBMITTED,
        exam_schedule=None,
        documents={},
        status_history=[],
    )

    with _store_guard():
        db.add(new_application)
        await db.commit()
        await db.refresh(new_application)

    return new_application


async def get_by_id(db: AsyncSession, id: UUID) -> AdmissionApplication | None:
    """Get application by ID."""
    with _store_guard():
        return await db.get(AdmissionApplication, id)


async def update_atomic(
    db: AsyncSession,
    id: UUID,
    patch: Patch,
) -> AdmissionApplication | None:
    """
    Apply a read-modify-write to one application as a single unit.

    The row is locked with SELECT ... FOR UPDATE, so concurrent updates of
    the same application serialize instead of interleaving. The patch
    receives the freshly read row and mutates it in place; if it raises,
    the transaction is rolled back and the exception propagates unchanged.

    Args:
        db: Database session
        id: Application UUID
        patch: Callable that validates and mutates the locked row

    Returns:
        The post-patch application, or None if the id does not exist

    Raises:
        AdapterUnavailableError: If the store is unreachable or times out
    """
    with _store_guard():
        result = await db.execute(
            select(AdmissionApplication)
            .where(AdmissionApplication.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        application = result.scalar_one_or_none()

        if application is None:
            await db.rollback()
            return None

        try:
            patch(application)
        except Exception:
            await db.rollback()
            raise

        await db.commit()
        await db.refresh(application)

    return application


async def list_applications(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    sort_by: str = "submitted_at",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[AdmissionApplication], int]:
    """
    Get applications with filters, sorting, and pagination for the admin dashboard.

    Args:
        db: Database session
        status: Filter by application status (optional)
        search: Case-insensitive match on name, email or program (optional)
        sort_by: submitted_at, exam_schedule or full_name. Default: submitted_at
        sort_order: asc or desc. Default: asc (oldest first for fairness)
        skip: Number of records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (list of applications, total count matching filters)
    """
    query = select(AdmissionApplication)

    if status:
        query = query.where(AdmissionApplication.status == status)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                AdmissionApplication.full_name.ilike(search_pattern),
                AdmissionApplication.email.ilike(search_pattern),
                AdmissionApplication.desired_program.ilike(search_pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())

    valid_sort_columns = {"submitted_at", "exam_schedule", "full_name"}
    if sort_by not in valid_sort_columns:
        sort_by = "submitted_at"

    sort_column = getattr(AdmissionApplication, sort_by)
    if sort_order.lower() == "desc":
        query = query.order_by(desc(sort_column))
    else:
        query = query.order_by(asc(sort_column))

    query = query.offset(skip).limit(limit)

    with _store_guard():
        total_result = await db.execute(count_query)
        total = total_result.scalar() or 0
        result = await db.execute(query)
        applications = list(result.scalars().all())

    return applications, total


async def get_dashboard_stats(db: AsyncSession) -> dict:
    """
    Get aggregated statistics for the admin dashboard.

    Returns:
        Dict with per-status counts, exams_this_week (scheduled within the
        next 7 days) and total_this_month (submitted this calendar month)
    """
    now = datetime.now(UTC)
    week_ahead = now + timedelta(days=7)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    def _count_status(status: ApplicationStatus):
        return func.count(case((AdmissionApplication.status == status, 1))).label(status.value)

    stats_query = select(
        *(_count_status(status) for status in ApplicationStatus),
        func.count(
            case(
                (
                    and_(
                        AdmissionApplication.status == ApplicationStatus.SCHEDULED,
                        AdmissionApplication.exam_schedule >= now,
                        AdmissionApplication.exam_schedule < week_ahead,
                    ),
                    1,
                ),
            )
        ).label("exams_this_week"),
        func.count(case((AdmissionApplication.submitted_at >= month_start, 1))).label(
            "total_this_month"
        ),
    )

    with _store_guard():
        result = await db.execute(stats_query)
        row = result.one()

    stats = {status.value: getattr(row, status.value) for status in ApplicationStatus}
    stats["exams_this_week"] = row.exams_this_week
    stats["total_this_month"] = row.total_this_month
    return stats


# ============================================
# Background Job Repository Methods
# ============================================


async def get_exams_needing_reminder(
    db: AsyncSession,
    now: datetime,
    window: timedelta,
) -> list[AdmissionApplication]:
    """
    Get scheduled applications whose exam starts within `window` of `now`
    and that have not been reminded yet.

    Idempotent: once exam_reminder_sent_at is set the row drops out.
    """
    with _store_guard():
        result = await db.execute(
            select(AdmissionApplication).where(
                and_(
                    AdmissionApplication.status == ApplicationStatus.SCHEDULED,
                    AdmissionApplication.exam_schedule >= now,
                    AdmissionApplication.exam_schedule < now + window,
                    AdmissionApplication.exam_reminder_sent_at.is_(None),
                )
            )
        )
        return list(result.scalars().all())


async def get_exams_held_before(
    db: AsyncSession,
    before: datetime,
) -> list[AdmissionApplication]:
    """Get scheduled applications whose exam time is earlier than `before`."""
    with _store_guard():
        result = await db.execute(
            select(AdmissionApplication).where(
                and_(
                    AdmissionApplication.status == ApplicationStatus.SCHEDULED,
                    AdmissionApplication.exam_schedule < before,
                )
            )
        )
        return list(result.scalars().all())


async def mark_exam_reminder_sent(
    db: AsyncSession,
    application_id: UUID,
    exam_schedule: datetime,
    sent_at: datetime | None = None,
) -> AdmissionApplication | None:
    """
    Record that a reminder went out for a specific exam slot.

    The marker is only written if the exam has not been moved in the
    meantime, so a reschedule racing the job still gets its own reminder.
    """
    sent_at = sent_at or datetime.now(UTC)

    def _patch(application: AdmissionApplication) -> None:
        if application.exam_schedule == exam_schedule:
            application.exam_reminder_sent_at = sent_at

    return await update_atomic(db, application_id, _patch)


async def record_notification(
    db: AsyncSession,
    application_id: UUID,
    result: dict,
) -> AdmissionApplication | None:
    """Persist the outcome of the latest notification attempt."""

    def _patch(application: AdmissionApplication) -> None:
        application.last_notification = result

    return await update_atomic(db, application_id, _patch)
