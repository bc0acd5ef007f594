"""
Error taxonomy for the upload relay.

Every failure the pipeline can produce is one of these. Each carries a
`kind` tag, a message that is safe to show the caller, and the HTTP
status the API layer should use. The core raises them; only the API
layer turns them into responses.
"""

from typing import Optional


class UploadError(Exception):
    """Base class for all upload pipeline failures."""

    status_code = 500

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class ValidationError(UploadError):
    """The submitted files do not satisfy the upload policy."""

    status_code = 400

    NO_FILES = "no-files-provided"
    UNSUPPORTED_TYPE = "unsupported-type"
    TOO_LARGE = "too-large"
    MALFORMED = "malformed-request"

    def __init__(self, kind: str, message: str, field: Optional[str] = None) -> None:
        super().__init__(kind, message)
        self.field = field


class ConfigurationError(UploadError):
    """The service is missing configuration it needs to relay."""

    WEBHOOK_NOT_CONFIGURED = "webhook-not-configured"


class StoreError(UploadError):
    """Writing to or reading from the object store failed."""

    WRITE_FAILED = "write-failed"
    READ_FAILED = "read-failed"
    NOT_FOUND = "not-found"
    NOT_CONFIGURED = "storage-not-configured"


class ObjectNotFoundError(StoreError):
    """The reference never existed or is not a valid object path."""

    status_code = 404

    def __init__(self, reference: str) -> None:
        super().__init__(StoreError.NOT_FOUND, "Object not found")
        self.reference = reference


class RelayError(UploadError):
    """
    The webhook call did not succeed.

    `upstream_status` is set when the endpoint answered at all, so the
    API can mirror it back to the caller.
    """

    NOT_CONFIGURED = "not-configured"
    UPSTREAM_REJECTED = "upstream-rejected"
    UNREACHABLE = "unreachable"

    def __init__(
        self,
        kind: str,
        detail: str,
        upstream_status: Optional[int] = None,
        upstream_body: object = None,
    ) -> None:
        message = detail if kind == self.NOT_CONFIGURED else f"Webhook error: {detail}"
        super().__init__(kind, message)
        self.detail = detail
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body

    @property
    def status_code(self) -> int:  # type: ignore[override]
        if self.kind == self.UPSTREAM_REJECTED:
            if self.upstream_status is not None and 400 <= self.upstream_status < 600:
                return self.upstream_status
            return 502
        if self.kind == self.UNREACHABLE:
            return 502
        return 500

    @property
    def retryable(self) -> bool:
        """Transport failures and upstream 5xx may succeed on a later attempt."""
        if self.kind == self.UNREACHABLE:
            return True
        return (
            self.kind == self.UPSTREAM_REJECTED
            and self.upstream_status is not None
            and self.upstream_status >= 500
        )


WEBHOOK_NOT_CONFIGURED_MESSAGE = (
    "Webhook URL not configured. Please set N8N_WEBHOOK_URL environment variable."
)


def webhook_not_configured() -> ConfigurationError:
    return ConfigurationError(
        ConfigurationError.WEBHOOK_NOT_CONFIGURED,
        WEBHOOK_NOT_CONFIGURED_MESSAGE,
    )
