"""
Upload API endpoint.

This is the relay flow:
1. User submits a photo and/or a video as multipart/form-data
2. Files are checked against the upload policy before they are read
3. In reference mode, files are stored and get public URLs
4. The files (or their URLs) are forwarded to the workflow webhook
5. The webhook's answer is echoed back to the user

Every failure comes back as JSON with an `error` string. The status is
400 for policy violations, 500 for configuration and storage problems,
and for webhook failures the upstream status where there is one.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.uploads.errors import UploadError, ValidationError
from ...core.uploads.models import MediaCategory, MediaFile, UploadAttempt
from ...core.uploads.validation import MAX_REQUEST_BYTES, MIB, check_file
from ..dependencies import UploadOrchestratorDep

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_FAILED_MESSAGE = "Failed to upload files"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after the webhook accepted the upload."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = Field(description="Status message")
    uploaded_files: Optional[dict[str, str]] = Field(
        default=None,
        alias="uploadedFiles",
        description="Public URLs keyed image_data/video_data (reference mode only)",
    )
    webhook_response: Any = Field(
        default=None,
        alias="webhookResponse",
        description="Body returned by the workflow webhook",
    )

    def to_json(self) -> dict[str, Any]:
        exclude = None if self.uploaded_files is not None else {"uploaded_files"}
        return self.model_dump(by_alias=True, exclude=exclude)


class ErrorResponse(BaseModel):
    """Body of every failed request."""
    error: str


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def check_content_length(request: Request) -> None:
    """Refuse bodies that cannot fit the policy before parsing them."""
    declared = request.headers.get("content-length")
    if declared is None or not declared.isdigit():
        return
    if int(declared) > MAX_REQUEST_BYTES:
        raise ValidationError(
            ValidationError.TOO_LARGE,
            f"photo/video: Upload exceeds the maximum request size of {MAX_REQUEST_BYTES // MIB}MB",
            field="photo/video",
        )


def single_file(form: FormData, category: MediaCategory) -> Optional[UploadFile]:
    """The one file sent under this field, or None. Plain text values are ignored."""
    files = [
        v for v in form.getlist(category.value)
        if isinstance(v, UploadFile) and not _is_blank(v)
    ]
    if len(files) > 1:
        raise ValidationError(
            ValidationError.MALFORMED,
            f"{category.value}: Only one file is allowed",
            field=category.value,
        )
    return files[0] if files else None


def upload_size(upload: UploadFile) -> int:
    """Size of the spooled upload without reading it into memory."""
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def _is_blank(upload: UploadFile) -> bool:
    # browsers submit an empty file input as a nameless, empty part
    return not upload.filename and upload_size(upload) == 0


def check_upload(upload: Optional[UploadFile], category: MediaCategory) -> None:
    """Check the spooled file against policy without reading it."""
    if upload is not None:
        check_file(category, upload.content_type, upload_size(upload))


async def read_media(upload: Optional[UploadFile], category: MediaCategory) -> Optional[MediaFile]:
    if upload is None:
        return None

    data = await upload.read()
    return MediaFile(
        category=category,
        data=data,
        content_type=upload.content_type or "",
        filename=upload.filename or "",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    status_code=status.HTTP_200_OK,
    summary="Upload a photo and/or video",
    description="Accepts optional `photo` and `video` files and forwards them to the workflow webhook",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No files, or a file violates the upload policy"},
        500: {"model": ErrorResponse, "description": "Webhook not configured or storage failure"},
        502: {"model": ErrorResponse, "description": "Webhook unreachable or rejected the upload"},
    },
)
async def upload_files(
    request: Request,
    orchestrator: UploadOrchestratorDep,
):
    """
    Relay an upload to the workflow.

    Accepted photos: JPEG, PNG, GIF up to 10MB.
    Accepted videos: MP4, MOV, AVI up to 100MB.
    """
    try:
        check_content_length(request)
    except ValidationError:
        # a missing webhook URL wins over any file problem
        orchestrator.check_configured()
        raise

    try:
        form = await request.form()
    except StarletteHTTPException as e:
        raise ValidationError(ValidationError.MALFORMED, f"Invalid multipart body: {e.detail}") from e

    try:
        photo_upload = single_file(form, MediaCategory.PHOTO)
        video_upload = single_file(form, MediaCategory.VIDEO)

        logger.info(
            "Upload started",
            extra={
                "has_photo": photo_upload is not None,
                "has_video": video_upload is not None,
                "strategy": orchestrator.strategy.value,
            }
        )

        orchestrator.check_preconditions(photo_upload is not None, video_upload is not None)
        check_upload(photo_upload, MediaCategory.PHOTO)
        check_upload(video_upload, MediaCategory.VIDEO)

        attempt = UploadAttempt(
            photo=await read_media(photo_upload, MediaCategory.PHOTO),
            video=await read_media(video_upload, MediaCategory.VIDEO),
        )
        outcome = await orchestrator.handle(attempt)

    except UploadError:
        raise
    except Exception as e:
        logger.error(
            "Upload failed unexpectedly",
            extra={"error": str(e)},
            exc_info=e,
        )
        raise UploadError("upload-failed", UPLOAD_FAILED_MESSAGE) from e
    finally:
        await form.close()

    response = UploadResponse(
        message=outcome.message,
        uploaded_files=outcome.uploaded_files if outcome.stored else None,
        webhook_response=outcome.webhook.body,
    )
    return JSONResponse(content=response.to_json())
