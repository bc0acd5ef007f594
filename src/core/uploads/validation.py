"""
Upload policy checks.

The policy is fixed in code rather than settings: the accepted types
and size limits are part of what the product promises the workflow on
the other side of the webhook.

Validation is pure. It only looks at declared media types and byte
lengths, so it runs before anything touches the object store.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ValidationError
from .models import (
    MediaCategory,
    MediaFile,
    Payload,
    PhotoAndVideoPayload,
    PhotoPayload,
    UploadAttempt,
    VideoPayload,
)

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

NO_FILES_MESSAGE = "At least one file (photo or video) is required"


@dataclass(frozen=True)
class MediaPolicy:
    """Accepted types and maximum size for one category."""
    accepted_types: frozenset[str]
    max_bytes: int
    type_message: str
    size_message: str


POLICIES: dict[MediaCategory, MediaPolicy] = {
    MediaCategory.PHOTO: MediaPolicy(
        accepted_types=frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif"}),
        max_bytes=10 * MIB,
        type_message="File must be a JPEG, PNG, or GIF image",
        size_message="Image must be less than 10MB",
    ),
    MediaCategory.VIDEO: MediaPolicy(
        accepted_types=frozenset({"video/mp4", "video/quicktime", "video/x-msvideo"}),
        max_bytes=100 * MIB,
        type_message="File must be an MP4, MOV, or AVI video",
        size_message="Video must be less than 100MB",
    ),
}

# largest request body worth parsing: both files at their limit plus
# room for multipart boundaries and part headers
MAX_REQUEST_BYTES = sum(p.max_bytes for p in POLICIES.values()) + MIB


@dataclass(frozen=True)
class Rejection:
    """Why a file was refused."""
    reason: str
    message: str


def normalize_media_type(media_type: Optional[str]) -> str:
    """Lowercase and drop parameters: 'Image/PNG; q=1' -> 'image/png'."""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


def validate(
    category: MediaCategory,
    media_type: Optional[str],
    byte_length: int,
) -> Optional[Rejection]:
    """
    Check one file against its category's policy.

    Returns None when accepted, otherwise the Rejection. A file of
    exactly the maximum size is accepted.
    """
    policy = POLICIES[category]

    if normalize_media_type(media_type) not in policy.accepted_types:
        return Rejection(ValidationError.UNSUPPORTED_TYPE, policy.type_message)

    if byte_length > policy.max_bytes:
        return Rejection(ValidationError.TOO_LARGE, policy.size_message)

    return None


def check_file(category: MediaCategory, media_type: Optional[str], byte_length: int) -> None:
    """Raise ValidationError naming the field if the file is refused."""
    rejection = validate(category, media_type, byte_length)
    if rejection is None:
        return

    logger.info(
        "Upload rejected",
        extra={
            "field": category.value,
            "reason": rejection.reason,
            "content_type": media_type,
            "size_bytes": byte_length,
        }
    )
    raise ValidationError(
        rejection.reason,
        f"{category.value}: {rejection.message}",
        field=category.value,
    )


def validate_attempt(attempt: UploadAttempt) -> Payload:
    """
    Validate every submitted file and build the payload.

    All-or-nothing: the first refused file fails the whole attempt.
    """
    if attempt.is_empty:
        raise ValidationError(ValidationError.NO_FILES, NO_FILES_MESSAGE)

    for media in attempt.files():
        check_file(media.category, media.content_type, media.size)

    return build_payload(attempt.photo, attempt.video)


def build_payload(photo: Optional[MediaFile], video: Optional[MediaFile]) -> Payload:
    if photo is not None and video is not None:
        return PhotoAndVideoPayload(photo=photo, video=video)
    if photo is not None:
        return PhotoPayload(photo=photo)
    if video is not None:
        return VideoPayload(video=video)
    raise ValidationError(ValidationError.NO_FILES, NO_FILES_MESSAGE)
