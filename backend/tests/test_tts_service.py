# backend/tests/test_tts_service.py
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock

from valerie.exceptions import SynthesisError
from valerie.services.tts_service import TTS_MAX_INPUT_CHARS, SpeechService

from fakes import PUBLIC_BASE, FakeS3, make_openai_client


class TestSynthesize:

    @pytest.mark.asyncio
    async def test_requests_mp3_with_configured_voice(self, storage):
        client = make_openai_client(speech=b"ID3-audio")
        speech = SpeechService(storage=storage, client=client)

        audio = await speech.synthesize("  Hello there.  ")

        assert audio == b"ID3-audio"
        kwargs = client.audio.speech.create.await_args.kwargs
        assert kwargs["model"] == "tts-1"
        assert kwargs["voice"] == "nova"
        assert kwargs["input"] == "Hello there."
        assert kwargs["response_format"] == "mp3"

    @pytest.mark.asyncio
    async def test_long_input_is_truncated(self, storage):
        client = make_openai_client()
        speech = SpeechService(storage=storage, client=client)

        await speech.synthesize("a" * (TTS_MAX_INPUT_CHARS + 100))

        assert len(client.audio.speech.create.await_args.kwargs["input"]) == TTS_MAX_INPUT_CHARS

    @pytest.mark.asyncio
    async def test_empty_text_is_rejected(self, storage):
        client = make_openai_client()
        speech = SpeechService(storage=storage, client=client)

        with pytest.raises(SynthesisError):
            await speech.synthesize("   ")

        client.audio.speech.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self, storage):
        client = make_openai_client()
        client.audio.speech.create = AsyncMock(side_effect=RuntimeError("tts down"))
        speech = SpeechService(storage=storage, client=client)

        with pytest.raises(SynthesisError, match="tts down"):
            await speech.synthesize("Hello")

    @pytest.mark.asyncio
    async def test_empty_audio_is_an_error(self, storage):
        client = make_openai_client()
        client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b""))
        speech = SpeechService(storage=storage, client=client)

        with pytest.raises(SynthesisError, match="no audio"):
            await speech.synthesize("Hello")


class TestGenerateSpeech:

    @pytest.mark.asyncio
    async def test_uploads_summary_speech(self, storage, fake_s3):
        speech = SpeechService(storage=storage, client=make_openai_client(speech=b"ID3-audio"))

        url = await speech.generate_speech("Hello there.", "RE1")

        assert url == f"{PUBLIC_BASE}/recordings/RE1_summary_speech.mp3"
        assert fake_s3.objects[("recordings", "RE1_summary_speech.mp3")] == b"ID3-audio"
        assert fake_s3.puts[-1]["ContentType"] == "audio/mpeg"

    @pytest.mark.asyncio
    async def test_upload_failure_is_a_synthesis_error(self, storage):
        storage._s3 = FakeS3(fail_on=("_summary_speech.mp3",))
        speech = SpeechService(storage=storage, client=make_openai_client())

        with pytest.raises(SynthesisError, match="Failed to upload speech"):
            await speech.generate_speech("Hello there.", "RE1")
