"""
Outbound webhook relay to the external workflow.
"""

from .client import HttpxWebhookRelay, create_webhook_relay

__all__ = ["HttpxWebhookRelay", "create_webhook_relay"]
