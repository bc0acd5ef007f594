"""
Unit tests for webhook retry policies.
"""

import pytest

from src.core.uploads.errors import RelayError
from src.core.uploads.retry import ExponentialBackoff, NoRetry, create_retry_policy


def unreachable() -> RelayError:
    return RelayError(RelayError.UNREACHABLE, "connection refused")


def rejected(status_code: int) -> RelayError:
    return RelayError(
        RelayError.UPSTREAM_REJECTED,
        f"Request failed with status code {status_code}",
        upstream_status=status_code,
    )


class TestNoRetry:
    def test_never_retries(self):
        policy = NoRetry()

        assert policy.max_attempts == 1
        assert policy.next_delay(unreachable(), attempt=1) is None


class TestExponentialBackoff:
    def test_delays_double_each_attempt(self):
        policy = ExponentialBackoff(max_attempts=4, base_delay=0.5, max_delay=10.0)

        assert policy.next_delay(unreachable(), attempt=1) == 0.5
        assert policy.next_delay(unreachable(), attempt=2) == 1.0
        assert policy.next_delay(unreachable(), attempt=3) == 2.0

    def test_gives_up_after_max_attempts(self):
        policy = ExponentialBackoff(max_attempts=3)

        assert policy.next_delay(unreachable(), attempt=3) is None

    def test_delay_is_capped(self):
        policy = ExponentialBackoff(max_attempts=10, base_delay=1.0, max_delay=3.0)

        assert policy.next_delay(unreachable(), attempt=6) == 3.0

    def test_retries_upstream_server_errors(self):
        policy = ExponentialBackoff(max_attempts=3)

        assert policy.next_delay(rejected(503), attempt=1) is not None

    def test_does_not_retry_client_errors(self):
        """A 4xx means the workflow refused the upload; retrying won't help."""
        policy = ExponentialBackoff(max_attempts=3)

        assert policy.next_delay(rejected(422), attempt=1) is None

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError, match="at least 1"):
            ExponentialBackoff(max_attempts=0)


class TestCreateRetryPolicy:
    def test_single_attempt_means_no_retry(self):
        assert isinstance(create_retry_policy(max_attempts=1), NoRetry)

    def test_multiple_attempts_means_backoff(self):
        policy = create_retry_policy(max_attempts=3, base_delay=0.1, max_delay=1.0)

        assert isinstance(policy, ExponentialBackoff)
        assert policy.max_attempts == 3
