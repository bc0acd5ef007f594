"""
Object serving endpoint.

Resolves a public reference issued at upload time back through the
object store and streams the bytes with their stored content type.
Bodies are streamed in chunks, so serving a 100MB video does not hold
it in memory.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ..dependencies import ObjectStoreDep
from .uploads import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()

# objects are immutable once written
CACHE_CONTROL = "public, max-age=3600"


@router.get(
    "/{object_path:path}",
    summary="Download an uploaded object",
    description="Streams a stored photo or video by the public path returned at upload",
    response_class=StreamingResponse,
    responses={
        404: {"model": ErrorResponse, "description": "No object at this path"},
        500: {"model": ErrorResponse, "description": "Storage read failed"},
    },
)
async def get_object(object_path: str, store: ObjectStoreDep) -> StreamingResponse:
    """
    Stream one stored object.

    Unknown or malformed paths raise ObjectNotFoundError (404); other
    read failures raise StoreError (500). Both are rendered by the
    application's UploadError handler.
    """
    resolved = await store.resolve(object_path)

    headers = {"Cache-Control": CACHE_CONTROL}
    if resolved.size_bytes is not None:
        headers["Content-Length"] = str(resolved.size_bytes)

    logger.debug(
        "Serving object",
        extra={"key": resolved.key, "size_bytes": resolved.size_bytes}
    )

    return StreamingResponse(
        resolved.chunks,
        media_type=resolved.content_type,
        headers=headers,
    )
