# backend/valerie/pipelines/recording_pipeline.py
from __future__ import annotations

import asyncio
import time
from typing import Optional

from valerie.exceptions import QuotaExceededError
from valerie.schemas import ProcessedRecording, RecordingMetadata
from valerie.services.openai_service import QUOTA_EXCEEDED_MESSAGE, RecordingProcessor
from valerie.services.storage_service import StorageService
from valerie.services.tts_service import SpeechService
from valerie.services.twilio_service import TwilioService
from valerie.utils.logger import logger


def build_callback_script(summary: str) -> str:
    return (
        "Hello, here is a summary of your recent call. "
        f"{(summary or '').strip()} "
        "Thank you for using our service. Goodbye."
    )


def _summary_box(summary: str) -> str:
    rule = "=" * 80
    return f"\n{rule}\nCALL SUMMARY:\n{rule}\n{summary}\n{rule}"


class RecordingPipeline:
    """
    One run per completed-recording notification:

        download -> { store raw audio || transcribe + summarize }
                 -> store transcript + summary
                 -> synthesize summary speech -> call the caller back

    Everything up to the metadata update propagates; the callback step only logs.
    """

    def __init__(
        self,
        twilio: TwilioService,
        processor: RecordingProcessor,
        storage: StorageService,
        speech: SpeechService,
        quota_precheck: bool = False,
    ):
        self.twilio = twilio
        self.processor = processor
        self.storage = storage
        self.speech = speech
        self.quota_precheck = quota_precheck

    async def process_recording(
        self,
        recording_sid: str,
        call_sid: str,
        recording_url: str,
        duration: int,
    ) -> None:
        started = time.time()
        try:
            existing = await self.storage.get_recording(recording_sid)
            if existing is not None and existing.is_complete():
                logger.info(f"Recording {recording_sid} already processed; ignoring redelivered notification")
                return

            if self.quota_precheck and not await self.processor.check_api_quota():
                raise QuotaExceededError(QUOTA_EXCEEDED_MESSAGE)

            audio = await self.twilio.download_recording(recording_url)

            metadata = RecordingMetadata(
                recording_sid=recording_sid,
                call_sid=call_sid,
                duration=max(0, int(duration or 0)),
            )
            _, processed = await asyncio.gather(
                self.storage.store_recording(audio, metadata),
                self.processor.process_recording(audio),
            )

            await self.storage.store_transcription_and_summary(
                recording_sid,
                processed.transcription,
                processed.summary,
            )
            logger.info(_summary_box(processed.summary))

        except Exception as e:
            logger.error(f"Error processing recording {recording_sid}: {e}")
            raise

        await self._send_summary_callback(recording_sid, call_sid, processed)

        elapsed = time.time() - started
        logger.info(f"Recording {recording_sid} processed successfully in {elapsed:.1f}s")

    async def _send_summary_callback(
        self,
        recording_sid: str,
        call_sid: str,
        processed: ProcessedRecording,
    ) -> Optional[str]:
        """Call the original caller back with the spoken summary. Never raises."""
        try:
            caller_number = await self.twilio.get_caller_number(call_sid)
            if not caller_number:
                logger.warning(f"No caller number for call {call_sid}; skipping summary callback")
                return None

            logger.info(f"Initiating call to {caller_number} to read summary")
            speech_url = await self.speech.generate_speech(
                build_callback_script(processed.summary),
                recording_sid,
            )
            callback_sid = await self.twilio.place_callback(caller_number, speech_url)
            logger.info(f"Initiated call to {caller_number} with audio summary (sid={callback_sid})")
            return callback_sid

        except Exception as e:
            logger.error(f"Error generating or playing speech for {recording_sid}: {e}")
            return None
