"""
Upload orchestration.

The orchestrator is the request-scoped coordinator: it takes what the
user submitted, validates it, stores it when the deployment relays
references, and hands the result to the webhook relay.

It is framework-agnostic. The object store and the relay are Protocols,
so tests can pass in-memory fakes and production passes R2 and httpx
implementations.

Ordering within one request is strict: validation, then storage, then
relay. Nothing is stored speculatively and nothing is rolled back:
if the relay fails after objects were written, those objects stay
resolvable.
"""

import logging
from typing import Optional, Protocol

from .errors import RelayError, StoreError, ValidationError, webhook_not_configured
from .models import (
    REFERENCE_FIELDS,
    BinaryWebhookPayload,
    MediaCategory,
    Payload,
    ReferenceWebhookPayload,
    RelayConfig,
    RelayStrategy,
    ResolvedObject,
    StoredObject,
    UploadAttempt,
    UploadOutcome,
    WebhookPayload,
    WebhookResult,
)
from .validation import NO_FILES_MESSAGE, validate_attempt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """
    Durable storage for uploaded files.

    Implementations generate the key themselves, so two uploads with the
    same filename never overwrite each other.
    """

    async def store(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
        category: MediaCategory,
    ) -> StoredObject:
        """Write the bytes and return the stored object with its public URL."""
        ...

    async def resolve(self, reference: str) -> ResolvedObject:
        """
        Locate an object by key, public path or public URL.

        Raises ObjectNotFoundError for unknown or malformed references.
        """
        ...


class WebhookRelay(Protocol):
    """Forwards a payload to the external workflow endpoint."""

    async def relay(self, payload: WebhookPayload, endpoint: str) -> WebhookResult:
        """Send the payload. Raises RelayError on any failure."""
        ...


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class UploadOrchestrator:
    """
    Drives one upload from submitted files to webhook response.

    Holds no per-request state, so one instance can serve concurrent
    requests. `store` may be None for binary passthrough, which never
    writes to storage.
    """

    def __init__(
        self,
        store: Optional[ObjectStore],
        relay: WebhookRelay,
        config: RelayConfig,
    ) -> None:
        self._store = store
        self._relay = relay
        self._config = config

    @property
    def strategy(self) -> RelayStrategy:
        return self._config.strategy

    def check_preconditions(self, has_photo: bool, has_video: bool) -> None:
        """
        Fail before any file is read.

        An empty form is a validation error; a missing webhook URL is a
        configuration error whatever the files look like.
        """
        if not has_photo and not has_video:
            raise ValidationError(ValidationError.NO_FILES, NO_FILES_MESSAGE)
        self.check_configured()

    def check_configured(self) -> None:
        if not self._config.is_configured:
            logger.error("Upload refused: webhook URL not configured")
            raise webhook_not_configured()

    async def handle(self, attempt: UploadAttempt) -> UploadOutcome:
        """
        Run the full pipeline for one request.

        Raises ValidationError, ConfigurationError, StoreError or
        RelayError; returns the outcome only when the webhook accepted.
        """
        self.check_preconditions(attempt.photo is not None, attempt.video is not None)
        payload = validate_attempt(attempt)

        stored: list[StoredObject] = []
        if self._config.strategy == RelayStrategy.REFERENCE_RELAY:
            stored = await self._store_all(payload)
            webhook_payload: WebhookPayload = ReferenceWebhookPayload(
                references={
                    REFERENCE_FIELDS[obj.category]: obj.public_url for obj in stored
                }
            )
        else:
            webhook_payload = BinaryWebhookPayload(files=payload.files)

        try:
            result = await self._relay.relay(webhook_payload, self._config.webhook_url)
        except RelayError as e:
            if stored:
                # stored objects are kept; nothing reconciles them later
                logger.warning(
                    "Relay failed after objects were stored",
                    extra={
                        "kind": e.kind,
                        "keys": [obj.key for obj in stored],
                    }
                )
            raise

        logger.info(
            "Upload relayed",
            extra={
                "strategy": self._config.strategy.value,
                "fields": [f.category.value for f in payload.files],
                "upstream_status": result.status_code,
                "attempts": result.attempts,
            }
        )

        return UploadOutcome(
            webhook=result,
            strategy=self._config.strategy,
            stored=stored,
        )

    async def _store_all(self, payload: Payload) -> list[StoredObject]:
        if self._store is None:
            logger.error("Reference relay configured without an object store")
            raise StoreError(StoreError.NOT_CONFIGURED, "Failed to upload files")

        stored = []
        for media in payload.files:
            obj = await self._store.store(
                data=media.data,
                original_name=media.filename,
                content_type=media.content_type,
                category=media.category,
            )
            stored.append(obj)
        return stored
