"""Tests for monorepo_release.retry."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from monorepo_release.retry import (
    RetryPolicy,
    is_retryable_error,
    retry_on_retryable_errors,
    retry_with_backoff,
)


class TestRetryPolicy:
    def test_exponential_without_jitter(self) -> None:
        policy = RetryPolicy(initial_delay=1.0, backoff_base=2.0, jitter=False)

        assert [policy.delay_for(a) for a in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_capped_at_max_delay(self) -> None:
        policy = RetryPolicy(initial_delay=10.0, max_delay=30.0, jitter=False)

        assert policy.delay_for(5) == 30.0

    @patch("monorepo_release.retry.random.random", return_value=1.0)
    def test_jitter_is_ten_percent(self, mock_random: object) -> None:
        policy = RetryPolicy(initial_delay=1.0, jitter=True)

        assert policy.delay_for(1) == pytest.approx(1.1)

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_returns_first_success(self) -> None:
        operation = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await retry_with_backoff(operation, sleep=sleep) == "ok"
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        operation = AsyncMock(side_effect=[RuntimeError("boom"), "ok"])
        sleep = AsyncMock()
        policy = RetryPolicy(initial_delay=1.0, jitter=False)

        assert await retry_with_backoff(operation, policy, sleep=sleep) == "ok"
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_raises_last_error_after_max_attempts(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        errors = [RuntimeError("first"), RuntimeError("second"), RuntimeError("last")]
        operation = AsyncMock(side_effect=errors)
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, initial_delay=1.0, jitter=False)

        with pytest.raises(RuntimeError, match="last"):
            await retry_with_backoff(operation, policy, sleep=sleep)

        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
        assert "Failed after 3 attempts" in caplog.text

    @pytest.mark.asyncio
    async def test_should_retry_false_raises_immediately(self) -> None:
        operation = AsyncMock(side_effect=ValueError("bad input"))
        sleep = AsyncMock()

        with pytest.raises(ValueError):
            await retry_with_backoff(
                operation, should_retry=lambda exc: False, sleep=sleep
            )

        operation.assert_awaited_once()
        sleep.assert_not_awaited()


class TestIsRetryableError:
    @pytest.mark.parametrize(
        "message",
        [
            "read ECONNRESET",
            "HTTP 503: Service Unavailable",
            "fatal: Could not read from remote repository.",
            "ssh: connect to host github.com port 22: Connection timed out",
        ],
    )
    def test_transient(self, message: str) -> None:
        assert is_retryable_error(RuntimeError(message))

    def test_permanent(self) -> None:
        assert not is_retryable_error(RuntimeError("HTTP 422: Validation Failed"))


@pytest.mark.asyncio
async def test_retry_on_retryable_errors_skips_permanent_failures() -> None:
    operation = AsyncMock(side_effect=RuntimeError("HTTP 401: Bad credentials"))
    sleep = AsyncMock()

    with pytest.raises(RuntimeError):
        await retry_on_retryable_errors(operation, sleep=sleep)

    operation.assert_awaited_once()
