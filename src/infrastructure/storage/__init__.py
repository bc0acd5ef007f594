"""
Object storage for uploaded photos and videos.

Supports R2 (Cloudflare) and S3 (AWS) via S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockObjectStore,
    R2ObjectStore,
    StorageConfig,
    build_public_url,
    create_object_store,
    reference_to_key,
)

__all__ = [
    "MockObjectStore",
    "R2ObjectStore",
    "StorageConfig",
    "build_public_url",
    "create_object_store",
    "reference_to_key",
]
