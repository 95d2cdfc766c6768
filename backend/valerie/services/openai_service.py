# backend/valerie/services/openai_service.py
"""
OpenAI transcription + summarization for call recordings.

- Whisper transcription: 5 attempts, backoff 1s doubling, capped at 30s
- Chat summary: 3 attempts, backoff 1s doubling, capped at 10s; falls back to
  a placeholder string instead of failing the pipeline
- Quota / billing / rate-limit errors are never retried
"""
from __future__ import annotations

import time
from typing import Any, Optional

from openai import AsyncOpenAI

from valerie.config import settings
from valerie.exceptions import QuotaExceededError, TransientApiError
from valerie.schemas import ProcessedRecording
from valerie.utils.logger import logger
from valerie.utils.retry import RetryError, RetryPolicy

SUMMARY_PROMPT = """
Please analyze this phone call transcription and provide a concise summary with the following components:

Hi there! I've analyzed your recent call and prepared a quick summary for you:

First, here's what the call was mainly about:
[OVERVIEW - 1-2 conversational sentences about the main purpose and outcome]

I noticed these people were part of the conversation:
[KEY PARTICIPANTS - Casual mention of speakers and their roles]

The most important points that came up were:
- [POINT 1]
- [POINT 2]
- [POINT 3]
(And maybe 1-2 more if they were truly important)

Let me highlight what needs follow-up:
[ACTION ITEMS - Conversational description of who needs to do what and when]

Something worth remembering - during the call, someone said:
"[NOTABLE QUOTE]"

Overall, the conversation felt [SENTIMENT - casual description like "pretty friendly" or "a bit tense"]

For next steps:
[NEXT STEPS - Simple description of follow-up plans]

Hope this helps! If anything seemed unclear in the recording, I've noted that you might want to double-check about [UNCLEAR POINTS].
""".strip()

SUMMARY_MAX_TOKENS = 500
SUMMARY_FALLBACK = "Error generating summary. Please try again later."
EMPTY_SUMMARY = "No summary generated"
QUOTA_EXCEEDED_MESSAGE = "OpenAI API quota exceeded. Please check your billing details or try again later."

_QUOTA_CODES = ("insufficient_quota",)
_QUOTA_MARKERS = ("quota", "billing", "rate limit")


def _error_details(error: BaseException) -> dict:
    """Pull the API error object ({code, type, message}) out of an SDK / HTTP error."""
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error")
        return inner if isinstance(inner, dict) else body

    response = getattr(error, "response", None)
    if response is not None:
        try:
            data = response.json()
        except Exception:
            return {}
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            return data["error"]
    return {}


def _status_code(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


def is_quota_error(error: BaseException) -> bool:
    """
    True when the error means the account is out of quota / billing / rate limit.

    Detected via:
    - error code or type == "insufficient_quota" (on the error or its API body)
    - HTTP 429
    - message containing "quota", "billing" or "rate limit"
    """
    if isinstance(error, QuotaExceededError):
        return True

    details = _error_details(error)
    for value in (
        getattr(error, "code", None),
        getattr(error, "type", None),
        details.get("code"),
        details.get("type"),
    ):
        if value in _QUOTA_CODES:
            return True

    if _status_code(error) == 429:
        return True

    message = f"{getattr(error, 'message', '') or ''} {error}".lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


class RecordingProcessor:
    """Transcribes recording audio with Whisper and summarizes it with a chat model."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        transcription_retry: Optional[RetryPolicy] = None,
        summary_retry: Optional[RetryPolicy] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)

        self.stt_model = (settings.OPENAI_STT_MODEL or "whisper-1").strip()
        self.summary_model = (settings.OPENAI_SUMMARY_MODEL or "gpt-4o-mini").strip()
        self.quota_check_model = (settings.OPENAI_QUOTA_CHECK_MODEL or self.summary_model).strip()
        self.transcription_timeout = float(settings.OPENAI_TRANSCRIPTION_TIMEOUT or 600)

        self.transcription_retry = transcription_retry or RetryPolicy(
            max_attempts=5,
            base_delay=1.0,
            max_delay=30.0,
            is_fatal=is_quota_error,
            operation_name="transcription",
        )
        self.summary_retry = summary_retry or RetryPolicy(
            max_attempts=3,
            base_delay=1.0,
            max_delay=10.0,
            is_fatal=is_quota_error,
            operation_name="summary",
        )

    async def process_recording(self, audio_bytes: bytes) -> ProcessedRecording:
        """Transcribe, then summarize. Quota errors from either step get one clear message."""
        try:
            transcription = await self.transcribe_audio(audio_bytes)
            summary = await self.generate_summary(transcription)
            return ProcessedRecording(transcription=transcription, summary=summary)
        except QuotaExceededError as e:
            logger.error(f"Error processing recording: {e}")
            raise QuotaExceededError(QUOTA_EXCEEDED_MESSAGE) from e
        except Exception as e:
            logger.error(f"Error processing recording: {e}")
            raise

    async def transcribe_audio(self, audio_bytes: bytes) -> str:
        size = len(audio_bytes or b"")
        logger.info(f"Processing audio buffer of size: {size} bytes ({size / (1024 * 1024):.2f} MB)")

        async def _transcribe() -> str:
            resp = await self.client.audio.transcriptions.create(
                model=self.stt_model,
                file=("audio.mp3", audio_bytes, "audio/mpeg"),
                timeout=self.transcription_timeout,
            )
            return (getattr(resp, "text", None) or "").strip()

        started = time.time()
        try:
            text = await self.transcription_retry.attempt(_transcribe)
        except RetryError as e:
            last = e.last_exception
            logger.error("All transcription attempts failed")
            raise TransientApiError(
                f"Transcription failed after {e.attempts} attempts: {last}",
                attempts=e.attempts,
            ) from last
        except Exception as e:
            if is_quota_error(e):
                logger.error("API quota exceeded or billing issue detected")
                raise QuotaExceededError(
                    f"OpenAI API quota exceeded. Please check your billing details: {e}"
                ) from e
            raise

        elapsed = (time.time() - started) * 1000
        logger.info(f"Transcription successful in {elapsed:.0f}ms ({len(text)} chars)")
        return text

    async def generate_summary(self, transcription: str) -> str:
        async def _summarize() -> str:
            resp = await self.client.chat.completions.create(
                model=self.summary_model,
                messages=[
                    {"role": "system", "content": SUMMARY_PROMPT},
                    {
                        "role": "user",
                        "content": (
                            "Please provide a concise summary of the following phone call transcript:\n\n"
                            f"{transcription}"
                        ),
                    },
                ],
                max_tokens=SUMMARY_MAX_TOKENS,
            )
            return _first_message(resp)

        try:
            summary = await self.summary_retry.attempt(_summarize)
        except RetryError:
            logger.error("All summary generation attempts failed")
            return SUMMARY_FALLBACK
        except Exception as e:
            if is_quota_error(e):
                logger.error("API quota exceeded or billing issue detected during summary generation")
                raise QuotaExceededError(
                    f"OpenAI API quota exceeded when generating summary. Please check your billing details: {e}"
                ) from e
            raise

        return summary or EMPTY_SUMMARY

    async def check_api_quota(self) -> bool:
        """
        Minimal completion to detect quota exhaustion before expensive work.
        Only a quota error returns False; anything else fails open.
        """
        try:
            await self.client.chat.completions.create(
                model=self.quota_check_model,
                messages=[{"role": "user", "content": "Test"}],
                max_tokens=5,
            )
            logger.info("API quota check passed")
            return True
        except Exception as e:
            if is_quota_error(e):
                logger.error("API quota check failed - insufficient quota")
                return False
            logger.info(f"API quota check had an error, but not quota-related: {e}")
            return True


def _first_message(resp: Any) -> str:
    choices = getattr(resp, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return (getattr(message, "content", None) or "").strip()
