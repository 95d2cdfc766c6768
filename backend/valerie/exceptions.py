# backend/valerie/exceptions.py
"""
Domain errors raised along the recording pipeline.

Propagation rules:
- DownloadError, QuotaExceededError, TransientApiError and StorageError reach
  the webhook handler, which answers 500 so Twilio redelivers on its own schedule.
- SynthesisError only happens in the callback step and is logged, never raised
  past the pipeline.
"""
from __future__ import annotations

from typing import Optional


class ValerieError(Exception):
    """Base class for all pipeline errors."""
    pass


class DownloadError(ValerieError):
    """Raised when the recording audio cannot be fetched from Twilio."""

    def __init__(self, status_code: Optional[int], reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        if status_code is None:
            message = f"Failed to download recording: {reason}"
        else:
            message = f"Failed to download recording: {status_code} {reason}".rstrip()
        super().__init__(message)


class QuotaExceededError(ValerieError):
    """Raised when OpenAI reports quota, billing or rate-limit exhaustion. Never retried."""
    pass


class TransientApiError(ValerieError):
    """Raised when an API call keeps failing after all retry attempts."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class StorageError(ValerieError):
    """Raised when an object upload or a metadata row write fails."""
    pass


class SynthesisError(ValerieError):
    """Raised when speech generation or its upload fails."""
    pass
