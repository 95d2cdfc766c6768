# backend/valerie/services/storage_service.py
"""
Artifact storage for recordings.

Objects go to one S3-compatible bucket (Supabase Storage in production):
    {recording_sid}.mp3                  raw call audio
    {recording_sid}_transcript.txt       Whisper transcript
    {recording_sid}_summary_speech.mp3   synthesized summary

Metadata goes to the `recordings` table: inserted once when the raw audio is
uploaded, updated once when transcript + summary are ready.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from valerie.config import settings
from valerie.database import SessionLocal, safe_commit
from valerie.exceptions import StorageError
from valerie.models.recording import Recording
from valerie.schemas import RecordingMetadata, RecordingRecord, StoredTranscript
from valerie.utils.logger import logger

AUDIO_CONTENT_TYPE = "audio/mpeg"
TRANSCRIPT_CONTENT_TYPE = "text/plain; charset=utf-8"
CACHE_CONTROL = "max-age=3600"


def recording_key(recording_sid: str) -> str:
    return f"{recording_sid}.mp3"


def transcript_key(recording_sid: str) -> str:
    return f"{recording_sid}_transcript.txt"


def speech_key(recording_sid: str) -> str:
    return f"{recording_sid}_summary_speech.mp3"


def _build_s3_client() -> Any:
    client_kwargs: dict = {"region_name": settings.STORAGE_REGION}
    if settings.STORAGE_ENDPOINT_URL:
        client_kwargs["endpoint_url"] = settings.STORAGE_ENDPOINT_URL
    if settings.STORAGE_ACCESS_KEY_ID and settings.STORAGE_SECRET_ACCESS_KEY:
        client_kwargs["aws_access_key_id"] = settings.STORAGE_ACCESS_KEY_ID
        client_kwargs["aws_secret_access_key"] = settings.STORAGE_SECRET_ACCESS_KEY
    return boto3.client("s3", **client_kwargs)


class StorageService:
    """Uploads recording artifacts and keeps their metadata row in sync."""

    def __init__(
        self,
        s3_client: Optional[Any] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        bucket: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self._s3 = s3_client or _build_s3_client()
        self._session_factory = session_factory or SessionLocal
        self.bucket = bucket or settings.STORAGE_BUCKET
        base = public_base_url or settings.STORAGE_PUBLIC_BASE_URL or settings.STORAGE_ENDPOINT_URL or ""
        self.public_base_url = base.strip().rstrip("/")

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{key}"

    def _put_object(self, key: str, body: bytes, content_type: str) -> str:
        try:
            self._s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Upload failed bucket={self.bucket} key={key}: {e}")
            raise StorageError(f"Failed to upload {key}: {e}") from e
        except Exception as e:
            # bad endpoint / credentials config surfaces as ValueError or similar
            logger.error(f"Upload error bucket={self.bucket} key={key}: {type(e).__name__}: {e}")
            raise StorageError(f"Failed to upload {key}: {e}") from e

        url = self.public_url(key)
        logger.info(f"Uploaded {key} ({len(body)} bytes) -> {url}")
        return url

    async def upload_object(self, key: str, body: bytes, content_type: str) -> str:
        """Upload bytes and return the object's public URL."""
        return await asyncio.to_thread(self._put_object, key, body, content_type)

    # ------------------------------------------------------------------
    # Metadata rows
    # ------------------------------------------------------------------

    def _insert_recording(self, metadata: RecordingMetadata, audio_url: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(Recording, metadata.recording_sid)
            if row is None:
                db.add(Recording(
                    recording_sid=metadata.recording_sid,
                    call_sid=metadata.call_sid,
                    duration=metadata.duration,
                    audio_url=audio_url,
                    transcript_url=metadata.transcript_url or None,
                    audio_summary=metadata.audio_summary or None,
                ))
            else:
                # left behind by an earlier run that failed after the upload
                logger.warning(f"Recording {metadata.recording_sid} already stored; refreshing audio metadata")
                row.call_sid = metadata.call_sid
                row.duration = metadata.duration
                row.audio_url = audio_url

            ok, error = safe_commit(db, f"insert recording {metadata.recording_sid}")
            if not ok:
                raise StorageError(f"Failed to store metadata: {error}")
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to store metadata: {e}") from e
        finally:
            db.close()

    def _update_transcript(self, recording_sid: str, transcript_url: str, summary: str) -> None:
        db = self._session_factory()
        try:
            matched = (
                db.query(Recording)
                .filter(Recording.recording_sid == recording_sid)
                .update(
                    {"transcript_url": transcript_url, "audio_summary": summary},
                    synchronize_session=False,
                )
            )
            if matched != 1:
                db.rollback()
                raise StorageError(
                    f"Failed to update recording with transcript: expected 1 row for {recording_sid}, matched {matched}"
                )

            ok, error = safe_commit(db, f"update recording {recording_sid}")
            if not ok:
                raise StorageError(f"Failed to update recording with transcript: {error}")
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to update recording with transcript: {e}") from e
        finally:
            db.close()

    def _get_recording(self, recording_sid: str) -> Optional[RecordingRecord]:
        db = self._session_factory()
        try:
            row = db.get(Recording, recording_sid)
            return RecordingRecord.model_validate(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read recording {recording_sid}: {e}") from e
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def store_recording(self, audio_bytes: bytes, metadata: RecordingMetadata) -> str:
        """Upload the raw audio, then insert its metadata row. Returns the audio URL."""
        try:
            audio_url = await self.upload_object(
                recording_key(metadata.recording_sid), audio_bytes, AUDIO_CONTENT_TYPE
            )
            await asyncio.to_thread(self._insert_recording, metadata, audio_url)
        except StorageError as e:
            logger.error(f"Failed to store recording: {e}")
            raise

        logger.info(f"Stored recording {metadata.recording_sid} metadata (duration={metadata.duration}s)")
        return audio_url

    async def store_transcription_and_summary(
        self,
        recording_sid: str,
        transcription: str,
        summary: str,
    ) -> StoredTranscript:
        """Upload the transcript, then set transcript_url + audio_summary on the existing row."""
        try:
            transcript_url = await self.upload_object(
                transcript_key(recording_sid),
                (transcription or "").encode("utf-8"),
                TRANSCRIPT_CONTENT_TYPE,
            )
            await asyncio.to_thread(self._update_transcript, recording_sid, transcript_url, summary)
        except StorageError as e:
            logger.error(f"Failed to store transcript: {e}")
            raise

        return StoredTranscript(transcript_url=transcript_url, summary=summary)

    async def get_recording(self, recording_sid: str) -> Optional[RecordingRecord]:
        return await asyncio.to_thread(self._get_recording, recording_sid)
