"""Blob key-value storage for donation records and the totals snapshot.

Keys are slash-separated paths (``donations/payments/<id>.json``). Two
backends share the ``BlobStore`` interface:

- ``S3BlobStore``: AWS S3 via boto3 (deployed environments)
- ``LocalBlobStore``: a directory tree on disk (local development)

The backend is chosen by ``BLOB_BACKEND``; see ``get_blob_store``.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from donations.config import Settings, get_settings
from donations.models.enums import BlobBackend
from donations.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 1000

# Error codes S3 returns when an If-None-Match write finds the key taken
GUARDED_WRITE_CONFLICTS = ("PreconditionFailed", "412", "ConditionalRequestConflict")


class BlobStoreError(Exception):
    """Raised when a blob storage operation fails."""

    pass


class BlobExistsError(BlobStoreError):
    """Raised when a guarded write finds the key already present."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Blob already exists: {key}")
        self.key = key


@dataclass(frozen=True)
class BlobInfo:
    """Metadata for a stored blob."""

    key: str
    size: int = 0
    last_modified: datetime | None = None


@dataclass
class BlobPage:
    """One page of a prefix listing."""

    blobs: list[BlobInfo] = field(default_factory=list)
    cursor: str | None = None


class BlobStore(ABC):
    """Abstract blob store."""

    @abstractmethod
    def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str = "application/json",
        overwrite: bool = True,
        cache_control: str | None = None,
    ) -> BlobInfo:
        """Write ``body`` under ``key``.

        Raises:
            BlobExistsError: If ``overwrite`` is False and the key exists.
            BlobStoreError: If the write fails.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Read a blob, returning None when the key does not exist."""
        raise NotImplementedError

    @abstractmethod
    def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list(self, prefix: str, *, cursor: str | None = None, limit: int | None = None) -> BlobPage:
        """List blobs under ``prefix``, one page at a time.

        Pass the returned cursor back in to fetch the next page; a None
        cursor means the listing is complete.
        """
        raise NotImplementedError

    def iter_blobs(self, prefix: str, *, page_size: int | None = None) -> Iterator[BlobInfo]:
        """Iterate every blob under ``prefix``, following pagination cursors."""
        cursor: str | None = None
        while True:
            page = self.list(prefix, cursor=cursor, limit=page_size)
            yield from page.blobs
            cursor = page.cursor
            if not cursor:
                return


class S3BlobStore(BlobStore):
    """Blob store backed by an S3 bucket."""

    def __init__(self, bucket: str, client: Any | None = None) -> None:
        """Initialize the S3 store.

        Args:
            bucket: Bucket name
            client: Optional preconfigured boto3 S3 client
        """
        if not bucket:
            raise BlobStoreError("BLOB_BUCKET is required for the s3 blob backend")
        self.bucket = bucket
        self._client = client or boto3.client("s3")

    def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str = "application/json",
        overwrite: bool = True,
        cache_control: str | None = None,
    ) -> BlobInfo:
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if cache_control:
            kwargs["CacheControl"] = cache_control
        if not overwrite:
            # Conditional write: S3 rejects it if any object exists at the key
            kwargs["IfNoneMatch"] = "*"

        try:
            self._client.put_object(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if not overwrite and code in GUARDED_WRITE_CONFLICTS:
                raise BlobExistsError(key) from e
            raise BlobStoreError(f"Failed to write s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to write s3://{self.bucket}/{key}: {e}") from e

        return BlobInfo(key=key, size=len(body), last_modified=datetime.now(timezone.utc))

    def get(self, key: str) -> bytes | None:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            body: bytes = response["Body"].read()
            return body
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404", "NotFound"):
                return None
            raise BlobStoreError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404", "NotFound"):
                return False
            raise BlobStoreError(f"Failed to check s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to check s3://{self.bucket}/{key}: {e}") from e

    def list(self, prefix: str, *, cursor: str | None = None, limit: int | None = None) -> BlobPage:
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Prefix": prefix,
            "MaxKeys": limit or DEFAULT_PAGE_SIZE,
        }
        if cursor:
            kwargs["ContinuationToken"] = cursor

        try:
            response = self._client.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"Failed to list s3://{self.bucket}/{prefix}: {e}") from e

        blobs = [
            BlobInfo(
                key=item["Key"],
                size=item.get("Size", 0),
                last_modified=item.get("LastModified"),
            )
            for item in response.get("Contents", [])
        ]
        next_cursor = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return BlobPage(blobs=blobs, cursor=next_cursor)


class LocalBlobStore(BlobStore):
    """Blob store backed by a local directory.

    Writes go to a temporary file that is renamed into place, so readers
    never observe a half-written blob.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        normalized = key.lstrip("/")
        path = (self.root / normalized).resolve()
        if self.root.resolve() not in path.parents:
            raise BlobStoreError(f"Invalid blob key: {key}")
        return path

    def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str = "application/json",
        overwrite: bool = True,
        cache_control: str | None = None,
    ) -> BlobInfo:
        path = self._path(key)
        if not overwrite and path.exists():
            raise BlobExistsError(key)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(body)
                if overwrite:
                    os.replace(tmp_name, path)
                else:
                    # link() fails if the key appeared since the check above
                    try:
                        os.link(tmp_name, path)
                    except FileExistsError as e:
                        raise BlobExistsError(key) from e
                    os.unlink(tmp_name)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise BlobStoreError(f"Failed to write {path}: {e}") from e

        return BlobInfo(key=key, size=len(body), last_modified=datetime.now(timezone.utc))

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BlobStoreError(f"Failed to read {path}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def list(self, prefix: str, *, cursor: str | None = None, limit: int | None = None) -> BlobPage:
        if not self.root.exists():
            return BlobPage()

        keys = sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file() and not path.name.endswith(".tmp")
        )
        keys = [key for key in keys if key.startswith(prefix)]

        # Cursor is the last key of the previous page
        if cursor:
            keys = [key for key in keys if key > cursor]

        page_size = limit or DEFAULT_PAGE_SIZE
        page_keys = keys[:page_size]
        next_cursor = page_keys[-1] if len(keys) > page_size else None

        blobs = []
        for key in page_keys:
            stat = (self.root / key).stat()
            blobs.append(
                BlobInfo(
                    key=key,
                    size=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return BlobPage(blobs=blobs, cursor=next_cursor)


def create_blob_store(settings: Settings) -> BlobStore:
    """Create the blob store selected by configuration.

    Args:
        settings: Application settings

    Returns:
        Configured BlobStore
    """
    if settings.blob_backend is BlobBackend.LOCAL:
        logger.info("Using local blob store at %s", settings.blob_local_dir)
        return LocalBlobStore(settings.blob_local_dir)

    logger.info("Using S3 blob store bucket=%s", settings.blob_bucket)
    return S3BlobStore(settings.blob_bucket or "")


# Module-level singleton for client reuse
_blob_store_instance: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """Get or create the singleton blob store."""
    global _blob_store_instance
    if _blob_store_instance is None:
        _blob_store_instance = create_blob_store(get_settings())
    return _blob_store_instance


def reset_blob_store() -> None:
    """Reset the singleton instance (for testing only).

    This allows tests to create a fresh S3 client inside a mock_aws context.
    """
    global _blob_store_instance
    _blob_store_instance = None
