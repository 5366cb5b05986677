"""
Fixtures for admissions tests.

The record store is replaced by an in-memory dict behind the repository's
get_by_id/update_atomic, and the blob store and mailer by in-memory fakes,
so the lifecycle, scheduling, document and notification rules run for real.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from app.core.email import MailTransportError
from app.core.storage import StorageError
from app.modules.admissions.config import AdmissionsConfig
from app.modules.admissions.models import AdmissionApplication, ApplicationStatus
from app.modules.admissions.service import build_admissions_core

# Fixed "now" for every test: 1 March 2025, 00:00 UTC
NOW = datetime(2025, 3, 1, 0, 0, tzinfo=UTC)


class FakeBlobStore:
    """In-memory blob store."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_put = False
        self.fail_delete = False

    async def put(self, data: bytes, suggested_key: str, content_type: str) -> str:
        if self.fail_put:
            raise StorageError("bucket unavailable")
        uri = f"supabase://admission-files/{suggested_key}"
        self.blobs[uri] = data
        return uri

    async def get(self, uri: str) -> bytes:
        if uri not in self.blobs:
            raise StorageError(f"Object not found: {uri}")
        return self.blobs[uri]

    async def delete(self, uri: str) -> None:
        if self.fail_delete:
            raise StorageError("delete failed")
        self.blobs.pop(uri, None)
        self.deleted.append(uri)


class FakeMailer:
    """Records sent messages; raises MailTransportError when `fail` is set."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to: str, subject: str, html_body: str) -> str:
        if self.fail:
            raise MailTransportError("SMTP relay refused connection")
        self.sent.append({"to": to, "subject": subject, "html": html_body})
        return f"msg-{len(self.sent)}"


class InMemoryApplicationStore:
    """Stands in for the repository's single-row read and atomic update."""

    def __init__(self):
        self.applications: dict = {}
        self.update_calls = 0

    def add(self, application: AdmissionApplication) -> AdmissionApplication:
        self.applications[application.id] = application
        return application

    async def get_by_id(self, db, id):
        return self.applications.get(id)

    async def update_atomic(self, db, id, patch):
        self.update_calls += 1
        application = self.applications.get(id)
        if application is None:
            return None
        patch(application)
        return application


def make_application(**overrides) -> AdmissionApplication:
    """Build a transient application with every column populated."""
    fields = {
        "id": uuid4(),
        "full_name": "Maria Santos",
        "email": "maria.santos@example.com",
        "contact_number": "09171234567",
        "desired_program": "BS Information Technology",
        "year_level": "1st Year",
        "status": ApplicationStatus.SUBMITTED,
        "exam_schedule": None,
        "submitted_at": datetime(2025, 2, 20, 8, 0, tzinfo=UTC),
        "documents": {},
        "status_history": [],
        "decided_at": None,
        "decided_by": None,
        "decision_reason": None,
        "exam_reminder_sent_at": None,
        "last_notification": None,
    }
    fields.update(overrides)
    return AdmissionApplication(**fields)


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def fixed_now():
    """Freeze the admissions clock at NOW."""
    with patch("app.modules.admissions.helpers.utcnow", return_value=NOW):
        yield NOW


@pytest.fixture
def store():
    """In-memory record store patched into the repository module."""
    memory = InMemoryApplicationStore()
    with (
        patch("app.modules.admissions.repository.get_by_id", new=memory.get_by_id),
        patch("app.modules.admissions.repository.update_atomic", new=memory.update_atomic),
    ):
        yield memory


@pytest.fixture
def admissions_config():
    return AdmissionsConfig()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def core(admissions_config, blob_store, mailer):
    """Admissions components wired to the fakes."""
    return build_admissions_core(
        admissions_config,
        blob_store=blob_store,
        mailer=mailer,
        frontend_url="https://admission.ptc.test",
    )


@pytest.fixture
def submitted_application(store):
    return store.add(make_application())


@pytest.fixture
def scheduled_application(store):
    return store.add(
        make_application(
            status=ApplicationStatus.SCHEDULED,
            exam_schedule=datetime(2025, 3, 10, 9, 0, tzinfo=UTC),
        )
    )


@pytest.fixture
def application_factory(store):
    """Create an application and put it in the in-memory store."""

    def _create(**overrides) -> AdmissionApplication:
        return store.add(make_application(**overrides))

    return _create


@pytest.fixture
def transient_application():
    """Create an application that is not in any store."""
    return make_application
