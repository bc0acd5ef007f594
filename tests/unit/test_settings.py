"""
Unit tests for settings that depend on the relay strategy.
"""

from src.config.settings import Settings
from src.core.uploads.models import RelayStrategy

WEBHOOK_URL = "https://workflow.example.com/webhook/upload"


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        n8n_webhook_url=WEBHOOK_URL,
        r2_mock_mode=False,
        r2_account_id="",
        r2_access_key_id="",
        r2_secret_access_key="",
        r2_endpoint_url=None,
    )
    values.update(overrides)
    return Settings(**values)


class TestRequiredFields:

    def test_binary_passthrough_needs_only_the_webhook(self):
        settings = make_settings(relay_strategy=RelayStrategy.BINARY_PASSTHROUGH)

        assert settings.uses_object_store is False
        assert settings.validate_required_fields() == []

    def test_reference_relay_needs_storage_credentials(self):
        settings = make_settings(relay_strategy=RelayStrategy.REFERENCE_RELAY)

        assert settings.validate_required_fields() == [
            "R2_ACCOUNT_ID",
            "R2_ACCESS_KEY_ID",
            "R2_SECRET_ACCESS_KEY",
        ]

    def test_mock_mode_needs_no_credentials(self):
        settings = make_settings(relay_strategy=RelayStrategy.REFERENCE_RELAY, r2_mock_mode=True)

        assert settings.missing_storage_fields() == []

    def test_missing_webhook_is_reported(self):
        settings = make_settings(n8n_webhook_url="  ")

        assert settings.validate_required_fields() == ["N8N_WEBHOOK_URL"]
