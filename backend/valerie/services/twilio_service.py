# backend/valerie/services/twilio_service.py
from __future__ import annotations

from typing import Optional

import httpx
from twilio.base.exceptions import TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from valerie.config import settings
from valerie.exceptions import DownloadError
from valerie.utils.logger import logger

RECORDING_NOTICE = "This call is being recorded for training purposes."
RECORDING_STATUS_PATH = "/recording-status"


def _recording_mp3_url(recording_url: str) -> str:
    url = (recording_url or "").strip()
    if not url:
        raise ValueError("recording_url is required")
    # Twilio serves WAV by default; the .mp3 suffix selects MP3
    if not url.lower().endswith(".mp3"):
        url += ".mp3"
    return url


def build_record_twiml(callback_path: str = RECORDING_STATUS_PATH) -> str:
    """Play the recording notice, then record up to MAX_RECORDING_SECONDS."""
    vr = VoiceResponse()
    vr.say(RECORDING_NOTICE)
    vr.record(
        timeout=30,
        max_length=settings.MAX_RECORDING_SECONDS,
        recording_status_callback=callback_path,
        recording_status_callback_event="completed",
    )
    return str(vr)


def build_playback_twiml(audio_url: str) -> str:
    vr = VoiceResponse()
    vr.play(audio_url)
    return str(vr)


class TwilioService:
    """
    Twilio side of the pipeline:
    - authenticated recording download
    - caller lookup
    - summary callback
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        http: Optional[httpx.AsyncClient] = None,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
    ):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID or ""
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN or ""
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER

        # async http client so calls.*_async never block the event loop
        self.client = client or Client(
            self.account_sid,
            self.auth_token,
            http_client=AsyncTwilioHttpClient(),
        )

        # reuse a single httpx client for downloads (pooling)
        self._http = http or httpx.AsyncClient(timeout=settings.RECORDING_DOWNLOAD_TIMEOUT)

    async def download_recording(self, recording_url: str) -> bytes:
        """
        Download the recording MP3 from Twilio with HTTP Basic auth.
        Non-2xx responses raise DownloadError(status, reason).
        """
        url = _recording_mp3_url(recording_url)
        logger.info(f"Downloading recording from: {url}")

        try:
            resp = await self._http.get(url, auth=(self.account_sid, self.auth_token))
        except httpx.HTTPError as e:
            logger.error(f"Error downloading recording: {e}")
            raise DownloadError(None, str(e)) from e

        if not resp.is_success:
            logger.error(f"Failed to download with status: {resp.status_code} {resp.reason_phrase}")
            raise DownloadError(resp.status_code, resp.reason_phrase)

        audio = resp.content
        logger.info(f"Downloaded recording: {len(audio)} bytes")
        return audio

    async def get_caller_number(self, call_sid: str) -> Optional[str]:
        """The number that placed the recorded call (Call.from)."""
        if not call_sid:
            raise ValueError("call_sid is required")
        try:
            call = await self.client.calls(call_sid).fetch_async()
        except TwilioRestException as e:
            logger.error(f"TwilioRestException fetching call {call_sid}: {e.msg}")
            raise
        return (getattr(call, "from_", None) or "").strip() or None

    async def place_callback(self, to_number: str, audio_url: str) -> str:
        """Call `to_number` and play `audio_url`. Returns the new Call SID."""
        if not to_number:
            raise ValueError("to_number is required")
        if not self.from_number:
            raise ValueError("TWILIO_PHONE_NUMBER is missing in settings/.env")

        try:
            call = await self.client.calls.create_async(
                to=to_number,
                from_=self.from_number,
                twiml=build_playback_twiml(audio_url),
            )
        except TwilioRestException as e:
            logger.error(f"TwilioRestException: {e.msg}")
            raise

        logger.info(f"Twilio callback created: sid={call.sid} to={to_number}")
        return call.sid

    async def aclose(self) -> None:
        await self._http.aclose()
        http_client = getattr(self.client, "http_client", None)
        if isinstance(http_client, AsyncTwilioHttpClient):
            await http_client.close()
