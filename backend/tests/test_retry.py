# backend/tests/test_retry.py
import pytest
from unittest.mock import AsyncMock

from valerie.utils.retry import RetryError, RetryPolicy, calculate_backoff


class QuotaBoom(Exception):
    pass


class TestCalculateBackoff:

    def test_doubles_from_base(self):
        assert [calculate_backoff(n, base_delay=1.0, max_delay=30.0) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        assert calculate_backoff(10, base_delay=1.0, max_delay=30.0) == 30.0
        assert calculate_backoff(5, base_delay=1.0, max_delay=10.0) == 10.0

    def test_jitter_never_exceeds_cap(self):
        for _ in range(50):
            assert calculate_backoff(8, base_delay=1.0, max_delay=10.0, jitter=True) <= 10.0


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_returns_first_success(self, no_sleep):
        policy = RetryPolicy(max_attempts=3, sleep=no_sleep)
        op = AsyncMock(return_value="ok")

        assert await policy.attempt(op) == "ok"
        assert op.await_count == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_until_success(self, no_sleep):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=30.0, sleep=no_sleep)
        op = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), "ok"])

        assert await policy.attempt(op) == "ok"
        assert op.await_count == 3
        assert no_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_retry_error(self, no_sleep):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=30.0, sleep=no_sleep)
        op = AsyncMock(side_effect=RuntimeError("still down"))

        with pytest.raises(RetryError) as exc_info:
            await policy.attempt(op)

        assert op.await_count == 5
        assert exc_info.value.attempts == 5
        assert str(exc_info.value.last_exception) == "still down"
        # no sleep after the final attempt
        assert no_sleep.delays == [1.0, 2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried(self, no_sleep):
        policy = RetryPolicy(
            max_attempts=5,
            is_fatal=lambda e: isinstance(e, QuotaBoom),
            sleep=no_sleep,
        )
        op = AsyncMock(side_effect=QuotaBoom("out of credits"))

        with pytest.raises(QuotaBoom):
            await policy.attempt(op)

        assert op.await_count == 1
        assert no_sleep.delays == []

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
