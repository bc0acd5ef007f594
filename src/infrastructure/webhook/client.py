"""
Webhook relay client.

Forwards uploads to the external workflow (an n8n webhook) over HTTP and
classifies what comes back:

- 2xx: success, the parsed body is returned to the caller
- any other status: upstream-rejected, carrying the upstream status
- no response at all (DNS, refused, timeout): unreachable

The wrapper is intentionally thin. It knows how to encode the two
payload shapes and how to read a response; whether to retry is decided
by the injected RetryPolicy.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from ...core.uploads.errors import WEBHOOK_NOT_CONFIGURED_MESSAGE, RelayError
from ...core.uploads.models import (
    BinaryWebhookPayload,
    ReferenceWebhookPayload,
    WebhookPayload,
    WebhookResult,
)
from ...core.uploads.retry import NoRetry, RetryPolicy

logger = logging.getLogger(__name__)


def build_request_kwargs(payload: WebhookPayload) -> dict[str, Any]:
    """
    Keyword arguments for httpx's post() for either payload shape.

    Binary passthrough becomes multipart/form-data with each file's
    original name and type; reference relay becomes a JSON body.
    """
    if isinstance(payload, BinaryWebhookPayload):
        return {
            "files": [
                (
                    media.category.value,
                    (media.filename or media.category.value, media.data, media.content_type),
                )
                for media in payload.files
            ]
        }
    if isinstance(payload, ReferenceWebhookPayload):
        return {"json": dict(payload.references)}
    raise TypeError(f"Unsupported webhook payload: {type(payload).__name__}")


def parse_body(response: httpx.Response) -> Any:
    """JSON when the body parses as JSON, otherwise the text."""
    if not response.content:
        return ""
    try:
        return response.json()
    except ValueError:
        return response.text


def upstream_message(body: Any, status_code: int) -> str:
    """The upstream's own `message` if it sent one, else a generic line."""
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"Request failed with status code {status_code}"


class HttpxWebhookRelay:
    """
    WebhookRelay implementation using httpx.

    A new AsyncClient is opened per relay call; the configured timeout
    covers connect, write and read. `transport` exists so tests can
    plug in httpx.MockTransport.
    """

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._timeout = timeout_seconds
        self._retry_policy = retry_policy or NoRetry()
        self._transport = transport
        self._sleep = sleep

    async def relay(self, payload: WebhookPayload, endpoint: Optional[str]) -> WebhookResult:
        """
        Send the payload, retrying only as the policy allows.

        Raises RelayError with kind not-configured, upstream-rejected
        or unreachable.
        """
        if not endpoint:
            raise RelayError(RelayError.NOT_CONFIGURED, WEBHOOK_NOT_CONFIGURED_MESSAGE)

        attempt = 0
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            while True:
                attempt += 1
                try:
                    return await self._send(client, payload, endpoint, attempt)
                except RelayError as e:
                    delay = self._retry_policy.next_delay(e, attempt)
                    if delay is None:
                        raise
                    logger.warning(
                        "Webhook attempt failed, retrying",
                        extra={
                            "attempt": attempt,
                            "kind": e.kind,
                            "delay_seconds": delay,
                        }
                    )
                    await self._sleep(delay)

    async def _send(
        self,
        client: httpx.AsyncClient,
        payload: WebhookPayload,
        endpoint: str,
        attempt: int,
    ) -> WebhookResult:
        try:
            response = await client.post(endpoint, **build_request_kwargs(payload))
        except httpx.RequestError as e:
            detail = str(e) or type(e).__name__
            logger.error(
                "Webhook unreachable",
                extra={"attempt": attempt, "error": detail}
            )
            raise RelayError(RelayError.UNREACHABLE, detail) from e

        body = parse_body(response)

        if not response.is_success:
            logger.error(
                "Webhook rejected upload",
                extra={"attempt": attempt, "upstream_status": response.status_code}
            )
            raise RelayError(
                RelayError.UPSTREAM_REJECTED,
                upstream_message(body, response.status_code),
                upstream_status=response.status_code,
                upstream_body=body,
            )

        logger.debug(
            "Webhook accepted upload",
            extra={"attempt": attempt, "upstream_status": response.status_code}
        )
        return WebhookResult(status_code=response.status_code, body=body, attempts=attempt)


def create_webhook_relay(
    timeout_seconds: float = 60.0,
    retry_policy: Optional[RetryPolicy] = None,
) -> HttpxWebhookRelay:
    return HttpxWebhookRelay(timeout_seconds=timeout_seconds, retry_policy=retry_policy)
