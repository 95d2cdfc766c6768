from valerie.services.openai_service import RecordingProcessor
from valerie.services.storage_service import StorageService
from valerie.services.tts_service import SpeechService
from valerie.services.twilio_service import TwilioService

__all__ = [
    'RecordingProcessor',
    'SpeechService',
    'StorageService',
    'TwilioService',
]
