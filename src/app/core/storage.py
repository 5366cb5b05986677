"""
Blob Storage using Supabase Storage

Stores uploaded admission documents in a private bucket and hands back a
durable reference URI of the form ``supabase://<bucket>/<path>``.
The URI identifies the object, not a time-limited download link.
"""

import asyncio
import logging
from typing import Protocol

from supabase import Client, create_client

from app.core.config import settings

logger = logging.getLogger(__name__)

URI_SCHEME = "supabase://"


class StorageError(Exception):
    """Raised when the blob store cannot complete an operation."""


class BlobStore(Protocol):
    """Contract the admissions core expects from a blob store."""

    async def put(self, data: bytes, suggested_key: str, content_type: str) -> str: ...

    async def get(self, uri: str) -> bytes: ...

    async def delete(self, uri: str) -> None: ...


def build_uri(bucket: str, path: str) -> str:
    return f"{URI_SCHEME}{bucket}/{path}"


def parse_uri(uri: str) -> tuple[str, str]:
    """
    Split a storage URI into (bucket, path).

    Raises:
        StorageError: If the URI is not a storage URI
    """
    if not uri.startswith(URI_SCHEME):
        raise StorageError(f"Not a storage URI: {uri}")
    bucket, _, path = uri[len(URI_SCHEME) :].partition("/")
    if not bucket or not path:
        raise StorageError(f"Malformed storage URI: {uri}")
    return bucket, path


class SupabaseBlobStore:
    """Blob store backed by a Supabase Storage bucket."""

    def __init__(
        self,
        bucket: str,
        timeout_seconds: float,
        client: Client | None = None,
    ):
        self._bucket = bucket
        self._timeout = timeout_seconds
        self._client = client

    def _storage(self, bucket_name: str):
        # Connect on first use so the app starts without storage credentials
        if self._client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise StorageError("Supabase credentials are not configured")
            self._client = create_client(settings.supabase_url, settings.supabase_key)
        return self._client.storage.from_(bucket_name)

    async def _call(self, func, *args, **kwargs):
        # The Supabase SDK is synchronous; keep it off the event loop
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise StorageError(f"Storage call timed out after {self._timeout}s") from e
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(str(e)) from e

    async def put(self, data: bytes, suggested_key: str, content_type: str) -> str:
        bucket = self._storage(self._bucket)
        await self._call(
            bucket.upload,
            path=suggested_key,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        logger.info(f"Stored {len(data)} bytes at {self._bucket}/{suggested_key}")
        return build_uri(self._bucket, suggested_key)

    async def get(self, uri: str) -> bytes:
        bucket_name, path = parse_uri(uri)
        return await self._call(self._storage(bucket_name).download, path)

    async def delete(self, uri: str) -> None:
        bucket_name, path = parse_uri(uri)
        await self._call(self._storage(bucket_name).remove, [path])
        logger.info(f"Deleted blob {bucket_name}/{path}")


_blob_store: SupabaseBlobStore | None = None


def get_blob_store() -> SupabaseBlobStore:
    """Return the process-wide Supabase blob store."""
    global _blob_store

    if _blob_store is None:
        _blob_store = SupabaseBlobStore(
            bucket=settings.storage_bucket,
            timeout_seconds=settings.store_timeout_seconds,
        )
    return _blob_store
