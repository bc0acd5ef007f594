"""
Upload relay pipeline.

Contains the domain models, the upload policy, retry policies and the
orchestrator that ties storage and the webhook relay together.
"""

from .errors import (
    ConfigurationError,
    ObjectNotFoundError,
    RelayError,
    StoreError,
    UploadError,
    ValidationError,
)
from .models import (
    MediaCategory,
    MediaFile,
    RelayConfig,
    RelayStrategy,
    StoredObject,
    UploadAttempt,
    UploadOutcome,
    WebhookResult,
)
from .orchestrator import ObjectStore, UploadOrchestrator, WebhookRelay

__all__ = [
    "ConfigurationError",
    "ObjectNotFoundError",
    "RelayError",
    "StoreError",
    "UploadError",
    "ValidationError",
    "MediaCategory",
    "MediaFile",
    "RelayConfig",
    "RelayStrategy",
    "StoredObject",
    "UploadAttempt",
    "UploadOutcome",
    "WebhookResult",
    "ObjectStore",
    "UploadOrchestrator",
    "WebhookRelay",
]
