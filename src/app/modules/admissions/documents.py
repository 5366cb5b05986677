"""
Document Attachment Manager

Validates uploaded files and records them against an application. The bytes
go to the blob store; the application row only keeps a descriptor
{uri, uploaded_at, size_bytes, content_type} per document type.
"""

import logging
import uuid
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.storage import BlobStore, StorageError
from app.modules.admissions import helpers, repository
from app.modules.admissions.config import AdmissionsConfig
from app.modules.admissions.errors import (
    AdapterUnavailableError,
    ApplicationNotFoundError,
    DocumentNotFoundError,
    PayloadTooLargeError,
    UnsupportedContentTypeError,
    UnsupportedDocumentTypeError,
)
from app.modules.admissions.models import AdmissionApplication
from app.modules.admissions.schemas import DocumentDescriptor

logger = logging.getLogger(__name__)

BLOB_KEY_PREFIX = "admission-documents"


def _blob_key(application_id: UUID, document_type: str) -> str:
    # Unique per upload so a replaced document never overwrites the old blob
    return f"{BLOB_KEY_PREFIX}/{application_id}/{document_type}/{uuid.uuid4().hex}"


class DocumentAttachmentManager:
    """Attaches, detaches and reads application documents."""

    def __init__(self, config: AdmissionsConfig, blob_store: BlobStore):
        self.config = config
        self.blob_store = blob_store

    def validate(
        self,
        document_type: str,
        content_type: str | None,
        size_bytes: int,
    ) -> None:
        """
        Check an upload against the configured limits.

        Raises:
            PayloadTooLargeError: If size_bytes exceeds max_upload_bytes
            UnsupportedDocumentTypeError: If document_type is not allowed
            UnsupportedContentTypeError: If content_type is not accepted
                for document_type
        """
        if size_bytes > self.config.max_upload_bytes:
            raise PayloadTooLargeError(size_bytes, self.config.max_upload_bytes)

        if document_type not in self.config.allowed_document_types:
            raise UnsupportedDocumentTypeError(document_type)

        normalized = (content_type or "").split(";")[0].strip().lower()
        if normalized not in self.config.content_types_for(document_type):
            raise UnsupportedContentTypeError(content_type or "unknown", document_type)

    async def attach(
        self,
        db: AsyncSession,
        application_id: UUID,
        document_type: str,
        file_bytes: bytes,
        content_type: str | None,
        size_bytes: int | None = None,
    ) -> DocumentDescriptor:
        """
        Validate and store a document, replacing any previous one of the same type.

        Args:
            db: Database session
            application_id: UUID of the application
            document_type: One of the configured document type keys
            file_bytes: File contents
            content_type: Declared MIME type
            size_bytes: Declared size; the actual byte count is what gets
                checked and recorded when the two disagree

        Returns:
            The descriptor written into the application's documents

        Raises:
            PayloadTooLargeError: If the file exceeds max_upload_bytes
            UnsupportedDocumentTypeError: If the document type is not allowed
            UnsupportedContentTypeError: If the content type is not accepted
            ApplicationNotFoundError: If the application doesn't exist
            AdapterUnavailableError: If the blob store or record store fails
        """
        actual_size = len(file_bytes)
        self.validate(document_type, content_type, max(actual_size, size_bytes or 0))

        # Fail fast before any bytes are stored
        application = await repository.get_by_id(db, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        normalized_type = (content_type or "").split(";")[0].strip().lower()
        try:
            uri = await self.blob_store.put(
                file_bytes,
                _blob_key(application_id, document_type),
                normalized_type,
            )
        except StorageError as e:
            logger.error(f"Blob store rejected {document_type} for {application_id}: {e}")
            raise AdapterUnavailableError("blob store", e) from e

        descriptor = DocumentDescriptor(
            uri=uri,
            uploaded_at=helpers.utcnow(),
            size_bytes=actual_size,
            content_type=normalized_type,
        )
        replaced: dict = {}

        def _patch(locked: AdmissionApplication) -> None:
            documents = dict(locked.documents or {})
            previous = documents.get(document_type)
            if previous:
                replaced["uri"] = previous.get("uri")
            documents[document_type] = descriptor.model_dump(mode="json")
            locked.documents = documents

        try:
            updated = await repository.update_atomic(db, application_id, _patch)
        except Exception:
            await self._discard(uri)
            raise

        if updated is None:
            # Deleted between the existence check and the write
            await self._discard(uri)
            raise ApplicationNotFoundError(application_id)

        logger.info(
            f"Attached {document_type} ({actual_size} bytes) to application {application_id}"
        )

        if replaced.get("uri") and self.config.purge_replaced_documents:
            await self._discard(replaced["uri"])

        return descriptor

    async def detach(
        self,
        db: AsyncSession,
        application_id: UUID,
        document_type: str,
    ) -> DocumentDescriptor:
        """
        Remove a document entry from an application.

        Returns:
            The descriptor that was removed

        Raises:
            ApplicationNotFoundError: If the application doesn't exist
            DocumentNotFoundError: If no document of that type is attached
            AdapterUnavailableError: If the record store is unavailable
        """
        removed: dict = {}

        def _patch(locked: AdmissionApplication) -> None:
            documents = dict(locked.documents or {})
            if document_type not in documents:
                raise DocumentNotFoundError(document_type)
            removed.update(documents.pop(document_type))
            locked.documents = documents

        updated = await repository.update_atomic(db, application_id, _patch)
        if updated is None:
            raise ApplicationNotFoundError(application_id)

        descriptor = DocumentDescriptor.model_validate(removed)
        logger.info(f"Detached {document_type} from application {application_id}")

        if self.config.purge_replaced_documents:
            await self._discard(descriptor.uri)

        return descriptor

    async def read(
        self,
        db: AsyncSession,
        application_id: UUID,
        document_type: str,
    ) -> bytes:
        """
        Fetch the stored bytes of an attached document.

        Raises:
            ApplicationNotFoundError: If the application doesn't exist
            DocumentNotFoundError: If no document of that type is attached
            AdapterUnavailableError: If the blob store fails
        """
        application = await repository.get_by_id(db, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        entry = (application.documents or {}).get(document_type)
        if not entry:
            raise DocumentNotFoundError(document_type)

        try:
            return await self.blob_store.get(entry["uri"])
        except StorageError as e:
            raise AdapterUnavailableError("blob store", e) from e

    async def _discard(self, uri: str) -> None:
        """Best-effort blob deletion; failures are logged, never raised."""
        try:
            await self.blob_store.delete(uri)
        except StorageError as e:
            logger.warning(f"Could not delete blob {uri}: {e}")
