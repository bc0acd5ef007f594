"""
Object storage client for uploaded photos and videos.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Every object gets a key the store generates itself, so concurrent uploads
of files with the same name never overwrite each other. The original
filename and media type travel as metadata and come back on read.

Public references have the form `<public_base_url>/objects/<key>` and are
served by the /objects route, which resolves them back through the store.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
import mimetypes
import re
from dataclasses import dataclass
from typing import AsyncIterator, Optional
from urllib.parse import unquote, urlparse
from uuid import uuid4

from ...core.uploads.errors import ObjectNotFoundError, StoreError
from ...core.uploads.models import MediaCategory, ResolvedObject, StoredObject

logger = logging.getLogger(__name__)

KEY_PREFIX = "uploads/"
OBJECTS_PATH = "/objects/"
DEFAULT_CHUNK_SIZE = 64 * 1024

_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,8}$")
_KEY_RE = re.compile(r"^uploads/(photo|video)/[0-9a-f]{32}(\.[a-z0-9]{1,8})?$")


@dataclass
class StorageConfig:
    """
    Configuration for R2/S3-compatible storage.

    `public_base_url` is prepended to `/objects/<key>` when issuing
    references; leave it empty for root-relative paths.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region
    public_base_url: str = ""
    chunk_size: int = DEFAULT_CHUNK_SIZE


# ---------------------------------------------------------------------------
# Keys and references
# ---------------------------------------------------------------------------

def guess_extension(original_name: str, content_type: str) -> str:
    """Extension for the generated key, from the filename or else the type."""
    if "." in original_name:
        ext = original_name.rsplit(".", 1)[-1].lower()
        if _EXTENSION_RE.match(ext):
            return f".{ext}"

    guessed = mimetypes.guess_extension(content_type.split(";", 1)[0].strip().lower())
    return guessed or ""


def generate_key(original_name: str, content_type: str, category: MediaCategory) -> str:
    """
    Build a fresh object key.

    Path structure: uploads/{category}/{uuid4 hex}{ext}
    The filename only contributes its extension.
    """
    return f"{KEY_PREFIX}{category.value}/{uuid4().hex}{guess_extension(original_name, content_type)}"


def build_public_url(key: str, public_base_url: str = "") -> str:
    return f"{public_base_url.rstrip('/')}{OBJECTS_PATH}{key}"


def reference_to_key(reference: str) -> str:
    """
    Turn a key, an /objects/ path or a full public URL into a key.

    Raises ObjectNotFoundError if the result is not a key this store
    could have issued.
    """
    path = unquote(urlparse(reference).path) if "://" in reference else reference

    if OBJECTS_PATH in path:
        path = path.split(OBJECTS_PATH, 1)[1]
    elif path.startswith("objects/"):
        path = path[len("objects/"):]
    key = path.lstrip("/")

    if not _KEY_RE.match(key):
        raise ObjectNotFoundError(reference)

    return key


def _object_metadata(original_name: str, category: MediaCategory) -> dict[str, str]:
    # S3 metadata values must be ASCII
    safe_name = original_name.encode("ascii", "replace").decode("ascii")
    return {
        "original-filename": safe_name,
        "category": category.value,
    }


# ---------------------------------------------------------------------------
# R2 Storage
# ---------------------------------------------------------------------------

class R2ObjectStore:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. A single put_object call is
    atomic in S3 semantics: readers see either nothing or the whole object.

    boto3 is synchronous, so each call runs in a worker thread and only
    the request that issued it waits.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 object store",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def store(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
        category: MediaCategory,
    ) -> StoredObject:
        """Upload an object to R2 under a freshly generated key."""
        key = generate_key(original_name, content_type, category)

        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=_object_metadata(original_name, category),
            )
        except Exception as e:
            logger.error(
                "Failed to store object",
                extra={"key": key, "error": str(e)}
            )
            raise StoreError(StoreError.WRITE_FAILED, "Failed to upload files") from e

        logger.info(
            "Stored object",
            extra={
                "key": key,
                "category": category.value,
                "size_bytes": len(data),
            }
        )

        return StoredObject(
            key=key,
            public_url=build_public_url(key, self._config.public_base_url),
            content_type=content_type,
            original_filename=original_name,
            size_bytes=len(data),
            category=category,
        )

    async def resolve(self, reference: str) -> ResolvedObject:
        """
        Open an object for streaming.

        A missing key is ObjectNotFoundError; anything else boto3 raises
        is a read failure.
        """
        key = reference_to_key(reference)

        try:
            response = await asyncio.to_thread(
                self._s3_client.get_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except Exception as e:
            if _is_missing_key(e):
                raise ObjectNotFoundError(reference) from e
            logger.error(
                "Failed to read object",
                extra={"key": key, "error": str(e)}
            )
            raise StoreError(StoreError.READ_FAILED, "Failed to retrieve object") from e

        metadata = response.get('Metadata') or {}
        return ResolvedObject(
            key=key,
            content_type=response.get('ContentType') or 'application/octet-stream',
            size_bytes=response.get('ContentLength'),
            chunks=self._stream_body(response['Body']),
            original_filename=metadata.get('original-filename'),
        )

    async def _stream_body(self, body) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await asyncio.to_thread(body.read, self._config.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()


def _is_missing_key(error: Exception) -> bool:
    response = getattr(error, 'response', None)
    if not isinstance(response, dict):
        return False
    code = str(response.get('Error', {}).get('Code', ''))
    return code in ('NoSuchKey', '404', 'NotFound')


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _MockRecord:
    data: bytes
    content_type: str
    original_filename: str


class MockObjectStore:
    """
    In-memory object store for local development and tests.

    Objects live in a dictionary keyed by the generated key. Records are
    immutable and keys are never reused, so a stored reference always
    resolves to the same bytes.

    Nothing is ever evicted: memory grows with every upload for the life
    of the process. Never use mock mode for long-running deployments;
    it is meant for development and tests only.
    """

    def __init__(
        self,
        public_base_url: str = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._objects: dict[str, _MockRecord] = {}
        self._public_base_url = public_base_url
        self._chunk_size = chunk_size
        logger.info("Initialized mock object store (in-memory)")

    def __len__(self) -> int:
        return len(self._objects)

    async def store(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
        category: MediaCategory,
    ) -> StoredObject:
        """Store object in memory."""
        key = generate_key(original_name, content_type, category)
        self._objects[key] = _MockRecord(
            data=bytes(data),
            content_type=content_type,
            original_filename=original_name,
        )

        logger.debug(
            "Stored object in mock store",
            extra={"key": key, "size_bytes": len(data)}
        )

        return StoredObject(
            key=key,
            public_url=build_public_url(key, self._public_base_url),
            content_type=content_type,
            original_filename=original_name,
            size_bytes=len(data),
            category=category,
        )

    async def resolve(self, reference: str) -> ResolvedObject:
        """Retrieve object from memory."""
        key = reference_to_key(reference)
        record = self._objects.get(key)
        if record is None:
            raise ObjectNotFoundError(reference)

        return ResolvedObject(
            key=key,
            content_type=record.content_type,
            size_bytes=len(record.data),
            chunks=self._iter_chunks(record.data),
            original_filename=record.original_filename,
        )

    async def _iter_chunks(self, data: bytes) -> AsyncIterator[bytes]:
        for start in range(0, len(data), self._chunk_size):
            yield data[start:start + self._chunk_size]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
    public_base_url: str = "",
):
    """
    Create object store based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory store
        public_base_url: Reference prefix for the mock store

    Returns:
        ObjectStore implementation (R2 or Mock)
    """
    if mock_mode:
        return MockObjectStore(public_base_url=public_base_url)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2ObjectStore(config)
