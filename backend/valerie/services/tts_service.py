# backend/valerie/services/tts_service.py
from __future__ import annotations

import time
from typing import Optional

from openai import AsyncOpenAI

from valerie.config import settings
from valerie.exceptions import SynthesisError
from valerie.services.storage_service import AUDIO_CONTENT_TYPE, StorageService, speech_key
from valerie.utils.logger import logger

TTS_MAX_INPUT_CHARS = 4096


class SpeechService:
    """Turns summary text into an MP3 via OpenAI TTS and publishes it to storage."""

    def __init__(
        self,
        storage: StorageService,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        voice: Optional[str] = None,
    ):
        self.storage = storage
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.model = (model or settings.OPENAI_TTS_MODEL or "tts-1").strip()
        # nova reads summaries the most naturally
        self.voice = (voice or settings.OPENAI_TTS_VOICE or "nova").strip().lower()

    async def synthesize(self, text: str) -> bytes:
        text = (text or "").strip()
        if not text:
            raise SynthesisError("TTS text is empty")

        started = time.time()
        try:
            resp = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text[:TTS_MAX_INPUT_CHARS],
                response_format="mp3",
            )
            audio_bytes = resp.content
        except Exception as e:
            logger.error(f"OpenAI TTS error after {(time.time() - started) * 1000:.0f}ms: {e}")
            raise SynthesisError(f"Speech synthesis failed: {e}") from e

        if not audio_bytes:
            raise SynthesisError("Speech synthesis returned no audio")

        logger.info(f"Generated speech audio: {len(audio_bytes)} bytes (voice={self.voice})")
        return audio_bytes

    async def generate_speech(self, text: str, recording_sid: str) -> str:
        """Synthesize `text` and upload it as {recording_sid}_summary_speech.mp3. Returns its public URL."""
        logger.info("Generating speech with OpenAI TTS")
        audio_bytes = await self.synthesize(text)

        try:
            speech_url = await self.storage.upload_object(
                speech_key(recording_sid), audio_bytes, AUDIO_CONTENT_TYPE
            )
        except Exception as e:
            logger.error(f"Failed to upload speech for {recording_sid}: {e}")
            raise SynthesisError(f"Failed to upload speech: {e}") from e

        logger.info(f"Speech URL: {speech_url}")
        return speech_url
