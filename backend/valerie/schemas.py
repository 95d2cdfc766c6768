# backend/valerie/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RecordingStatusCallback(BaseModel):
    """Form body Twilio posts to /recording-status."""

    RecordingUrl: str = ""
    RecordingSid: str = ""
    CallSid: str = ""
    RecordingDuration: str = ""
    RecordingStatus: str = ""

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("RecordingUrl", "RecordingSid", "CallSid")
            if not (getattr(self, name) or "").strip()
        ]

    def duration_seconds(self) -> int:
        try:
            return max(0, int(float(self.RecordingDuration)))
        except (TypeError, ValueError):
            return 0


class RecordingMetadata(BaseModel):
    recording_sid: str
    call_sid: str
    duration: int = Field(default=0, ge=0)
    transcript_url: Optional[str] = None
    audio_summary: Optional[str] = None


class ProcessedRecording(BaseModel):
    transcription: str
    summary: str


class StoredTranscript(BaseModel):
    transcript_url: str
    summary: str


class RecordingRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recording_sid: str
    call_sid: str
    duration: int = 0
    audio_url: str
    transcript_url: Optional[str] = None
    audio_summary: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_complete(self) -> bool:
        return bool((self.transcript_url or "").strip() and (self.audio_summary or "").strip())
