"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

The core pipeline never reads these settings directly. It receives a
RelayConfig built from them once per process.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.uploads.models import RelayConfig, RelayStrategy


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Media Relay API"
    api_version: str = "v1"

    # Webhook Configuration
    n8n_webhook_url: Optional[str] = Field(
        default=None,
        description="Workflow webhook that receives every upload. Required to accept uploads."
    )
    relay_strategy: RelayStrategy = Field(
        default=RelayStrategy.BINARY_PASSTHROUGH,
        description="'binary' forwards the raw files; 'reference' stores them and forwards public URLs."
    )
    webhook_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for the webhook call. Workflows may process the upload inline."
    )
    webhook_max_attempts: int = Field(
        default=1,
        ge=1,
        description="Total webhook attempts per upload. 1 disables retries."
    )
    webhook_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="First retry delay; doubles on each further retry."
    )
    webhook_max_backoff_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single retry delay."
    )
    require_webhook_url: bool = Field(
        default=False,
        description="Refuse to start without N8N_WEBHOOK_URL instead of failing each upload."
    )

    # Public references
    public_base_url: str = Field(
        default="",
        description="Prefix for issued object URLs, e.g. https://media.example.com. Empty gives /objects/... paths."
    )

    # R2/S3 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="media-relay-uploads",
        description="R2 bucket name for photo/video storage"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2. Development and tests only: objects are never evicted."
    )
    storage_chunk_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Chunk size in bytes when streaming objects back to clients."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def webhook_configured(self) -> bool:
        return bool(self.n8n_webhook_url and self.n8n_webhook_url.strip())

    def relay_config(self) -> RelayConfig:
        """The immutable relay configuration handed to the core."""
        return RelayConfig(
            webhook_url=self.n8n_webhook_url.strip() if self.webhook_configured else None,
            strategy=self.relay_strategy,
            timeout_seconds=self.webhook_timeout_seconds,
        )

    @property
    def uses_object_store(self) -> bool:
        """Only reference relay writes uploads to the object store."""
        return self.relay_strategy == RelayStrategy.REFERENCE_RELAY

    def missing_storage_fields(self) -> list[str]:
        """R2 settings that must be set before a real store can be built."""
        if self.r2_mock_mode:
            return []

        missing = []
        if not self.r2_account_id and not self.r2_endpoint_url:
            missing.append("R2_ACCOUNT_ID")
        if not self.r2_access_key_id:
            missing.append("R2_ACCESS_KEY_ID")
        if not self.r2_secret_access_key:
            missing.append("R2_SECRET_ACCESS_KEY")
        return missing

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the configured strategy.

        Returns list of missing required fields.
        This is separate from Pydantic validation because a missing webhook
        URL is reported per request rather than at startup by default.
        Binary passthrough never touches storage, so R2 settings are only
        required for reference relay.
        """
        missing = []

        if not self.webhook_configured:
            missing.append("N8N_WEBHOOK_URL")

        if self.uses_object_store:
            missing.extend(self.missing_storage_fields())

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
