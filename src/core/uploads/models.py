"""
Domain models for the upload relay.

These models describe what moves through the pipeline: the files a user
submitted, the validated payload, the objects we stored and what the
external workflow answered. None of them know about HTTP frameworks,
boto3 or httpx.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Optional, Union


class MediaCategory(Enum):
    """The two kinds of file a user can submit."""
    PHOTO = "photo"
    VIDEO = "video"


class RelayStrategy(Enum):
    """
    How uploads are forwarded to the workflow webhook.

    Chosen once per deployment, never per request.
    """
    BINARY_PASSTHROUGH = "binary"    # re-encode the raw bytes as multipart
    REFERENCE_RELAY = "reference"    # store first, send public URLs as JSON


@dataclass(frozen=True)
class MediaFile:
    """A single file as received from the multipart form."""
    category: MediaCategory
    data: bytes
    content_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadAttempt:
    """
    What arrived on one request, before validation.

    Either field may be missing here. Validation turns this into a
    Payload, which cannot be empty.
    """
    photo: Optional[MediaFile] = None
    video: Optional[MediaFile] = None

    @property
    def is_empty(self) -> bool:
        return self.photo is None and self.video is None

    def files(self) -> list[MediaFile]:
        return [f for f in (self.photo, self.video) if f is not None]


@dataclass(frozen=True)
class PhotoPayload:
    photo: MediaFile

    @property
    def files(self) -> tuple[MediaFile, ...]:
        return (self.photo,)


@dataclass(frozen=True)
class VideoPayload:
    video: MediaFile

    @property
    def files(self) -> tuple[MediaFile, ...]:
        return (self.video,)


@dataclass(frozen=True)
class PhotoAndVideoPayload:
    photo: MediaFile
    video: MediaFile

    @property
    def files(self) -> tuple[MediaFile, ...]:
        return (self.photo, self.video)


# A validated upload. There is no variant for "nothing submitted".
Payload = Union[PhotoPayload, VideoPayload, PhotoAndVideoPayload]


@dataclass(frozen=True)
class StoredObject:
    """
    A file written to the object store.

    Immutable once written. The key is generated by the store, so the
    original filename is metadata only.
    """
    key: str
    public_url: str
    content_type: str
    original_filename: str
    size_bytes: int
    category: MediaCategory


# webhook field names for each category in the reference relay body
REFERENCE_FIELDS = {
    MediaCategory.PHOTO: "image_data",
    MediaCategory.VIDEO: "video_data",
}


@dataclass(frozen=True)
class WebhookResult:
    """What the workflow endpoint answered on a successful relay."""
    status_code: int
    body: Any = None
    attempts: int = 1


@dataclass(frozen=True)
class RelayConfig:
    """
    Relay settings injected into the orchestrator and the relay client.

    Built once from Settings at startup and never mutated, so the core
    never reads the process environment itself.
    """
    webhook_url: Optional[str]
    strategy: RelayStrategy = RelayStrategy.BINARY_PASSTHROUGH
    timeout_seconds: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url and self.webhook_url.strip())


@dataclass
class UploadOutcome:
    """The successful end state of one upload request."""
    webhook: WebhookResult
    strategy: RelayStrategy
    stored: list[StoredObject] = field(default_factory=list)
    message: str = "Files uploaded successfully"

    @property
    def uploaded_files(self) -> dict[str, str]:
        """Public references keyed by webhook field name."""
        return {REFERENCE_FIELDS[obj.category]: obj.public_url for obj in self.stored}


@dataclass(frozen=True)
class BinaryWebhookPayload:
    """Raw files, sent to the webhook as multipart/form-data."""
    files: tuple[MediaFile, ...]


@dataclass(frozen=True)
class ReferenceWebhookPayload:
    """Public URLs of stored objects, sent to the webhook as JSON."""
    references: dict[str, str]


WebhookPayload = Union[BinaryWebhookPayload, ReferenceWebhookPayload]


@dataclass
class ResolvedObject:
    """
    A stored object located for reading.

    `chunks` yields the body lazily, so large videos are never held in
    memory whole while being served.
    """
    key: str
    content_type: str
    size_bytes: Optional[int]
    chunks: AsyncIterator[bytes]
    original_filename: Optional[str] = None
