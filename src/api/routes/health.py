"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we accept uploads?)

The distinction matters in orchestration systems like Kubernetes
where liveness and readiness have different behaviors.
"""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    This endpoint should be very fast and not check external dependencies.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "relay_strategy": settings.relay_strategy.value,
            "mock_mode": {"r2": settings.r2_mock_mode},
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if uploads can be accepted. Checks configuration.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(settings: SettingsDep):
    """
    Readiness check - can we accept uploads?

    Uploads need a webhook URL. Reference relay also needs object storage
    credentials unless the store runs in mock mode. Returns 503 if any check fails, which tells
    load balancers not to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    if settings.webhook_configured:
        checks.append(ReadinessCheck(name="webhook", status="ok"))
    else:
        checks.append(ReadinessCheck(
            name="webhook",
            status="error",
            error="N8N_WEBHOOK_URL not configured"
        ))

    # binary passthrough never touches storage
    if settings.uses_object_store:
        missing_storage = settings.missing_storage_fields()
        if settings.r2_mock_mode:
            checks.append(ReadinessCheck(name="storage", status="ok", error="mock mode"))
        elif missing_storage:
            checks.append(ReadinessCheck(
                name="storage",
                status="error",
                error=f"Missing required fields: {', '.join(missing_storage)}"
            ))
        else:
            checks.append(ReadinessCheck(name="storage", status="ok"))

    all_ok = all(check.status == "ok" for check in checks)

    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    http_status = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=http_status, content=response.model_dump())
