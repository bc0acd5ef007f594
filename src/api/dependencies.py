"""
FastAPI dependency injection.

Dependencies provide instances of the object store, the webhook relay,
the orchestrator and configuration to route handlers. Using dependency
injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Tests swap in fakes with app.dependency_overrides
- Configuration is read once and handed to the core explicitly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.uploads.errors import StoreError
from ..core.uploads.orchestrator import ObjectStore, UploadOrchestrator, WebhookRelay
from ..core.uploads.retry import create_retry_policy
from ..infrastructure.storage.client import StorageConfig, create_object_store
from ..infrastructure.webhook.client import create_webhook_relay

logger = logging.getLogger(__name__)

# Shared store instance. The mock store must outlive a single request so
# issued references keep resolving; the R2 client is reusable anyway.
_object_store = None


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_object_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStore:
    """
    Provide the object store for uploads and the /objects route.

    Returns either the R2 store or the in-memory store based on settings,
    created on first use and reused afterwards.
    """
    global _object_store

    if _object_store is None:
        if settings.r2_mock_mode:
            _object_store = create_object_store(
                mock_mode=True,
                public_base_url=settings.public_base_url,
            )
            logger.info("Created shared mock object store")
        else:
            missing = settings.missing_storage_fields()
            if missing:
                logger.error(
                    "Object storage not configured",
                    extra={"missing_fields": missing}
                )
                raise StoreError(StoreError.NOT_CONFIGURED, "Object storage not configured")

            config = StorageConfig(
                access_key_id=settings.r2_access_key_id,
                secret_access_key=settings.r2_secret_access_key,
                bucket_name=settings.r2_bucket_name,
                endpoint_url=settings.r2_endpoint,
                public_base_url=settings.public_base_url,
                chunk_size=settings.storage_chunk_size,
            )
            _object_store = create_object_store(config=config)
            logger.info("Created R2 object store")

    return _object_store


def get_upload_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[ObjectStore]:
    """
    Provide the store the orchestrator writes to.

    Binary passthrough never writes, so it gets no store and needs no
    storage credentials. Reference relay without credentials also gets
    none; the orchestrator then fails the upload after its own checks.
    """
    if not settings.uses_object_store or settings.missing_storage_fields():
        return None
    return get_object_store(settings)


def reset_object_store() -> None:
    """Forget the shared store. Used by tests and on shutdown."""
    global _object_store
    _object_store = None


def get_webhook_relay(
    settings: Annotated[Settings, Depends(get_settings)],
) -> WebhookRelay:
    """Provide the webhook relay with the configured retry policy."""
    retry_policy = create_retry_policy(
        max_attempts=settings.webhook_max_attempts,
        base_delay=settings.webhook_backoff_seconds,
        max_delay=settings.webhook_max_backoff_seconds,
    )
    return create_webhook_relay(
        timeout_seconds=settings.webhook_timeout_seconds,
        retry_policy=retry_policy,
    )


def get_upload_orchestrator(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[Optional[ObjectStore], Depends(get_upload_store)],
    relay: Annotated[WebhookRelay, Depends(get_webhook_relay)],
) -> UploadOrchestrator:
    """
    Provide the orchestrator for one request.

    The orchestrator is stateless, so we create a new instance per request.
    """
    return UploadOrchestrator(
        store=store,
        relay=relay,
        config=settings.relay_config(),
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
ObjectStoreDep = Annotated[ObjectStore, Depends(get_object_store)]
UploadOrchestratorDep = Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
