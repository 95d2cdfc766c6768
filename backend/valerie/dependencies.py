# backend/valerie/dependencies.py
"""
Process-wide service wiring.

Clients are built once, on first use inside the event loop, and handed to each
adapter explicitly. Tests swap the whole pipeline by patching get_recording_pipeline.
"""
from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from valerie.config import settings
from valerie.pipelines.recording_pipeline import RecordingPipeline
from valerie.services.openai_service import RecordingProcessor
from valerie.services.storage_service import StorageService
from valerie.services.tts_service import SpeechService
from valerie.services.twilio_service import TwilioService
from valerie.utils.logger import logger

_pipeline: Optional[RecordingPipeline] = None


def build_recording_pipeline() -> RecordingPipeline:
    openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    storage = StorageService()

    return RecordingPipeline(
        twilio=TwilioService(),
        processor=RecordingProcessor(client=openai_client),
        storage=storage,
        speech=SpeechService(storage=storage, client=openai_client),
        quota_precheck=settings.QUOTA_PRECHECK_ENABLED,
    )


async def get_recording_pipeline() -> RecordingPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_recording_pipeline()
        logger.info("Recording pipeline initialized")
    return _pipeline


async def close_recording_pipeline() -> None:
    global _pipeline
    if _pipeline is None:
        return
    pipeline, _pipeline = _pipeline, None

    await pipeline.twilio.aclose()
    await pipeline.processor.client.close()
