"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import reset_object_store
from .api.routes import health, objects, uploads
from .config.settings import get_settings
from .core.uploads.errors import UploadError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the effective configuration on startup and checks required
    settings. A missing webhook URL only fails startup when
    REQUIRE_WEBHOOK_URL is set; otherwise each upload reports it.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Media Relay API starting",
        extra={
            "version": settings.api_version,
            "relay_strategy": settings.relay_strategy.value,
            "mock_mode": {"r2": settings.r2_mock_mode},
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    if settings.require_webhook_url and not settings.webhook_configured:
        raise RuntimeError(
            "N8N_WEBHOOK_URL is required when REQUIRE_WEBHOOK_URL is enabled"
        )

    yield

    # Shutdown
    reset_object_store()
    logger.info("Media Relay API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    This function is called once at startup (in production) or
    multiple times (in tests with different configurations).
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Accepts a photo and/or video upload and relays it to a workflow webhook.

        ## Workflow

        1. **Upload**: `POST /api/upload` with `photo` and/or `video` form fields
           - Photos: JPEG, PNG or GIF, up to 10MB
           - Videos: MP4, MOV or AVI, up to 100MB
           - The webhook's response is returned in `webhookResponse`

        2. **Fetch**: `GET /objects/{path}` (reference mode)
           - Streams a stored file by the URL returned in `uploadedFiles`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        uploads.router,
        prefix="/api",
        tags=["Uploads"],
    )

    app.include_router(
        objects.router,
        prefix="/objects",
        tags=["Objects"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "Media Relay API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError):
        """
        Render pipeline errors as {"error": message}.

        The status comes from the error itself: 400 for validation,
        404 for unknown objects, the upstream status for webhook
        rejections, 5xx otherwise.
        """
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "kind": exc.kind,
                "status_code": exc.status_code,
            }
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
