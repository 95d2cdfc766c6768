# backend/valerie/utils/retry.py
"""
Retry Policy with Exponential Backoff

One reusable policy for the OpenAI calls in the pipeline:
- Exponential backoff (base delay, doubling, capped)
- Fatal errors (quota / billing) fail immediately, without sleeping
- Every other error is retried until max_attempts is reached

Usage:
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=30.0,
                         is_fatal=is_quota_error, operation_name="transcription")
    text = await policy.attempt(lambda: client.audio.transcriptions.create(...))
"""
from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional

from valerie.utils.logger import logger


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Optional[BaseException] = None, attempts: int = 0):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = False,
) -> float:
    """
    Calculate backoff delay using exponential backoff with optional jitter.

    Args:
        attempt: Number of failed attempts so far minus one (0-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential calculation (typically 2.0)
        jitter: Whether to add random jitter to prevent thundering herd

    Returns:
        float: Delay in seconds before next retry
    """
    delay = min(base_delay * (exponential_base ** attempt), max_delay)

    if jitter:
        delay = min(delay * (0.5 + random.random()), max_delay)

    return delay


def _never_fatal(error: BaseException) -> bool:
    return False


class RetryPolicy:
    """
    attempt(operation) runs an async operation up to max_attempts times.

    - is_fatal(error) True  -> error is re-raised immediately (no sleep, no retry)
    - otherwise            -> sleep calculate_backoff(n) and try again
    - attempts exhausted   -> RetryError(last_exception, attempts)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        is_fatal: Optional[Callable[[BaseException], bool]] = None,
        operation_name: str = "operation",
        jitter: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.is_fatal = is_fatal or _never_fatal
        self.operation_name = operation_name
        self.jitter = jitter
        self._sleep = sleep

    def delay_for(self, failed_attempts: int) -> float:
        return calculate_backoff(
            failed_attempts - 1,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )

    async def attempt(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        op_name = self.operation_name
        last_exception: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.info(f"[{op_name}] Attempt {attempt} of {self.max_attempts}")
                return await operation()

            except Exception as e:
                if self.is_fatal(e):
                    logger.error(f"[{op_name}] Non-retryable error: {type(e).__name__}: {e}")
                    raise

                last_exception = e

                if attempt >= self.max_attempts:
                    logger.error(
                        f"[{op_name}] Failed after {self.max_attempts} attempts: {type(e).__name__}: {e}"
                    )
                    break

                delay = self.delay_for(attempt)
                logger.warning(
                    f"[{op_name}] Attempt {attempt}/{self.max_attempts} failed: {type(e).__name__}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)

        raise RetryError(
            f"[{op_name}] Failed after {self.max_attempts} attempts",
            last_exception=last_exception,
            attempts=self.max_attempts,
        )
