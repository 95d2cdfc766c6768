# backend/valerie/api/recordings.py
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response

from valerie import dependencies
from valerie.config import settings
from valerie.schemas import RecordingStatusCallback
from valerie.services.twilio_service import RECORDING_STATUS_PATH, build_record_twiml
from valerie.utils.logger import logger
from valerie.utils.twilio_signature import get_webhook_url_for_validation, validate_twilio_signature

router = APIRouter(tags=["recordings"])


async def _read_form(request: Request) -> dict:
    form = await request.form()
    return {k: str(v) for k, v in form.items()}


def _signature_ok(request: Request, params: dict) -> bool:
    if not settings.TWILIO_VALIDATE_SIGNATURE:
        return True
    signature = request.headers.get("X-Twilio-Signature", "")
    url = get_webhook_url_for_validation(str(request.url))
    return validate_twilio_signature(signature, url, params)


@router.post("/record")
async def record_call(request: Request):
    """TwiML: announce the recording, record the call, report completion to /recording-status."""
    params = await _read_form(request)
    if not _signature_ok(request, params):
        return PlainTextResponse("Invalid signature", status_code=403)

    twiml = build_record_twiml(RECORDING_STATUS_PATH)
    return Response(content=twiml, media_type="application/xml")


@router.post(RECORDING_STATUS_PATH)
async def recording_status(request: Request):
    """
    Twilio calls this once the recording is completed.

    400 -> required fields missing
    200 -> pipeline finished (callback failures don't count)
    500 -> pipeline raised; Twilio redelivers on its own schedule
    """
    logger.info("Received recording status callback")
    params = await _read_form(request)
    if not _signature_ok(request, params):
        return PlainTextResponse("Invalid signature", status_code=403)

    payload = RecordingStatusCallback(**{
        k: v for k, v in params.items() if k in RecordingStatusCallback.model_fields
    })

    missing = payload.missing_fields()
    if missing:
        logger.error(f"Missing required fields in recording callback: {missing}")
        return PlainTextResponse("Missing required fields in request", status_code=400)

    logger.info(f"Recording status update: {payload.RecordingSid}, status: {payload.RecordingStatus}")

    try:
        pipeline = await dependencies.get_recording_pipeline()
        await pipeline.process_recording(
            recording_sid=payload.RecordingSid.strip(),
            call_sid=payload.CallSid.strip(),
            recording_url=payload.RecordingUrl.strip(),
            duration=payload.duration_seconds(),
        )
    except Exception as e:
        logger.error(f"Error handling recording status: {e}")
        return PlainTextResponse("Error processing recording status", status_code=500)

    return PlainTextResponse("Recording status processed", status_code=200)
