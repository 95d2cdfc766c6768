# backend/valerie/models/recording.py
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from valerie.database import Base


class Recording(Base):
    __tablename__ = "recordings"

    # Twilio RecordingSid (RE...)
    recording_sid = Column(String(64), primary_key=True, index=True)
    call_sid = Column(String(64), nullable=False, index=True)
    duration = Column(Integer, nullable=False, server_default="0")

    # Set at insert time; a row never exists without it
    audio_url = Column(String(500), nullable=False)

    # Filled by the update once transcript + summary are ready
    transcript_url = Column(String(500), nullable=True)
    audio_summary = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
