"""
Unit tests for the httpx webhook relay.

Every test plugs an httpx.MockTransport into the relay, so requests are
inspected and answered in-process.
"""

import json

import httpx
import pytest

from src.core.uploads.errors import RelayError
from src.core.uploads.models import (
    BinaryWebhookPayload,
    MediaCategory,
    MediaFile,
    ReferenceWebhookPayload,
)
from src.core.uploads.retry import ExponentialBackoff
from src.infrastructure.webhook.client import (
    HttpxWebhookRelay,
    build_request_kwargs,
    upstream_message,
)

WEBHOOK_URL = "https://workflow.example.com/webhook/upload"


def make_relay(handler, retry_policy=None, sleeps=None) -> HttpxWebhookRelay:
    async def fake_sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return HttpxWebhookRelay(
        timeout_seconds=5.0,
        retry_policy=retry_policy,
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
    )


@pytest.fixture
def photo() -> MediaFile:
    return MediaFile(
        category=MediaCategory.PHOTO,
        data=b"\x89PNG fake image",
        content_type="image/png",
        filename="sunset.png",
    )


@pytest.fixture
def video() -> MediaFile:
    return MediaFile(
        category=MediaCategory.VIDEO,
        data=b"fake mp4 bytes",
        content_type="video/mp4",
        filename="surf.mp4",
    )


# ---------------------------------------------------------------------------
# Payload Encoding
# ---------------------------------------------------------------------------

class TestPayloadEncoding:

    @pytest.mark.asyncio
    async def test_binary_payload_is_multipart_with_original_names(self, photo, video):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"ok": True})

        relay = make_relay(handler)
        await relay.relay(BinaryWebhookPayload(files=(photo, video)), WEBHOOK_URL)

        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="photo"; filename="sunset.png"' in seen["body"]
        assert b'name="video"; filename="surf.mp4"' in seen["body"]
        assert b"Content-Type: video/mp4" in seen["body"]
        assert b"fake mp4 bytes" in seen["body"]

    @pytest.mark.asyncio
    async def test_reference_payload_is_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        relay = make_relay(handler)
        payload = ReferenceWebhookPayload(references={"image_data": "/objects/uploads/photo/a.png"})
        await relay.relay(payload, WEBHOOK_URL)

        assert seen["json"] == {"image_data": "/objects/uploads/photo/a.png"}

    def test_nameless_file_uses_field_name(self, photo):
        nameless = MediaFile(photo.category, photo.data, photo.content_type, filename="")

        kwargs = build_request_kwargs(BinaryWebhookPayload(files=(nameless,)))

        assert kwargs["files"][0] == ("photo", ("photo", photo.data, "image/png"))


# ---------------------------------------------------------------------------
# Response Classification
# ---------------------------------------------------------------------------

class TestResponseClassification:

    @pytest.mark.asyncio
    async def test_success_returns_parsed_json(self, photo):
        relay = make_relay(lambda request: httpx.Response(200, json={"ok": True}))

        result = await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert result.status_code == 200
        assert result.body == {"ok": True}
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_success_with_text_body(self, photo):
        relay = make_relay(lambda request: httpx.Response(200, text="Workflow was started"))

        result = await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert result.body == "Workflow was started"

    @pytest.mark.asyncio
    async def test_non_2xx_is_upstream_rejected(self, photo):
        relay = make_relay(
            lambda request: httpx.Response(404, json={"code": 404, "message": "webhook not registered"})
        )

        with pytest.raises(RelayError) as exc_info:
            await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        error = exc_info.value
        assert error.kind == "upstream-rejected"
        assert error.upstream_status == 404
        assert error.status_code == 404
        assert error.message == "Webhook error: webhook not registered"

    @pytest.mark.asyncio
    async def test_rejection_without_message_uses_status_line(self, photo):
        relay = make_relay(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(RelayError) as exc_info:
            await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert exc_info.value.message == "Webhook error: Request failed with status code 500"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_redirect_status_maps_to_bad_gateway(self, photo):
        relay = make_relay(lambda request: httpx.Response(302, headers={"location": "/elsewhere"}))

        with pytest.raises(RelayError) as exc_info:
            await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_failure_is_unreachable(self, photo):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        relay = make_relay(handler)

        with pytest.raises(RelayError) as exc_info:
            await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert exc_info.value.kind == "unreachable"
        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Webhook error: Connection refused"

    @pytest.mark.asyncio
    async def test_missing_endpoint_is_not_configured(self, photo):
        relay = make_relay(lambda request: httpx.Response(200))

        with pytest.raises(RelayError) as exc_info:
            await relay.relay(BinaryWebhookPayload(files=(photo,)), None)

        assert exc_info.value.kind == "not-configured"
        assert exc_info.value.status_code == 500

    def test_upstream_message_prefers_body_message(self):
        assert upstream_message({"message": "bad input"}, 400) == "bad input"
        assert upstream_message(["not", "a", "dict"], 400) == "Request failed with status code 400"


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------

class TestRetries:

    @pytest.mark.asyncio
    async def test_default_policy_makes_a_single_attempt(self, photo):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        relay = make_relay(handler)

        with pytest.raises(RelayError):
            await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_backoff_retries_until_success(self, photo):
        responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"ok": True})])
        sleeps: list[float] = []

        relay = make_relay(
            lambda request: next(responses),
            retry_policy=ExponentialBackoff(max_attempts=3, base_delay=0.5),
            sleeps=sleeps,
        )

        result = await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert result.attempts == 3
        assert sleeps == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_backoff_does_not_retry_client_errors(self, photo):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"message": "bad"})

        relay = make_relay(handler, retry_policy=ExponentialBackoff(max_attempts=3))

        with pytest.raises(RelayError):
            await relay.relay(BinaryWebhookPayload(files=(photo,)), WEBHOOK_URL)

        assert len(calls) == 1
