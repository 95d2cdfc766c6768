# backend/tests/test_recordings_api.py
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch
from twilio.request_validator import RequestValidator

from valerie import dependencies
from valerie.config import settings
from valerie.exceptions import DownloadError
from valerie.main import app

COMPLETED_FORM = {
    "RecordingUrl": "https://api.twilio.com/2010-04-01/Accounts/ACtest/Recordings/RE1",
    "RecordingSid": "RE1",
    "CallSid": "CA1",
    "RecordingDuration": "42",
    "RecordingStatus": "completed",
}


@pytest.fixture
def pipeline():
    fake = MagicMock()
    fake.process_recording = AsyncMock(return_value=None)
    with patch.object(dependencies, "get_recording_pipeline", AsyncMock(return_value=fake)):
        yield fake


@pytest.fixture
def client(pipeline):
    return TestClient(app)


# ============================================================================
# /record
# ============================================================================

class TestRecordWebhook:

    def test_returns_record_twiml(self, client):
        response = client.post("/record")

        assert response.status_code == 200
        assert "application/xml" in response.headers["content-type"]
        assert "<Record" in response.text
        assert 'recordingStatusCallback="/recording-status"' in response.text


# ============================================================================
# /recording-status
# ============================================================================

class TestRecordingStatusWebhook:

    def test_completed_recording_runs_pipeline(self, client, pipeline):
        response = client.post("/recording-status", data=COMPLETED_FORM)

        assert response.status_code == 200
        assert response.text == "Recording status processed"
        pipeline.process_recording.assert_awaited_once_with(
            recording_sid="RE1",
            call_sid="CA1",
            recording_url=COMPLETED_FORM["RecordingUrl"],
            duration=42,
        )

    @pytest.mark.parametrize("field", ["RecordingUrl", "RecordingSid", "CallSid"])
    def test_missing_required_field(self, client, pipeline, field):
        form = {k: v for k, v in COMPLETED_FORM.items() if k != field}

        response = client.post("/recording-status", data=form)

        assert response.status_code == 400
        assert response.text == "Missing required fields in request"
        pipeline.process_recording.assert_not_awaited()

    def test_blank_field_counts_as_missing(self, client, pipeline):
        response = client.post("/recording-status", data={**COMPLETED_FORM, "CallSid": "   "})

        assert response.status_code == 400
        pipeline.process_recording.assert_not_awaited()

    def test_bad_duration_defaults_to_zero(self, client, pipeline):
        response = client.post("/recording-status", data={**COMPLETED_FORM, "RecordingDuration": "n/a"})

        assert response.status_code == 200
        assert pipeline.process_recording.await_args.kwargs["duration"] == 0

    def test_pipeline_failure_returns_500(self, client, pipeline):
        pipeline.process_recording.side_effect = DownloadError(404, "Not Found")

        response = client.post("/recording-status", data=COMPLETED_FORM)

        assert response.status_code == 500
        assert response.text == "Error processing recording status"


class TestPipelineUnavailable:
    """Pipeline construction fails when OpenAI has no API key."""

    @pytest.fixture
    def unconfigured_client(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr(dependencies, "_pipeline", None)
        return TestClient(app)

    def test_missing_fields_still_get_400(self, unconfigured_client):
        response = unconfigured_client.post("/recording-status", data={})

        assert response.status_code == 400
        assert response.text == "Missing required fields in request"
        assert dependencies._pipeline is None

    def test_complete_request_gets_500(self, unconfigured_client):
        response = unconfigured_client.post("/recording-status", data=COMPLETED_FORM)

        assert response.status_code == 500
        assert response.text == "Error processing recording status"


class TestSignatureValidation:

    def test_rejects_unsigned_request(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(settings, "TWILIO_VALIDATE_SIGNATURE", True)

        response = client.post("/recording-status", data=COMPLETED_FORM)

        assert response.status_code == 403
        pipeline.process_recording.assert_not_awaited()

    def test_accepts_signed_request(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(settings, "TWILIO_VALIDATE_SIGNATURE", True)
        monkeypatch.setattr(settings, "TWILIO_WEBHOOK_URL", None)
        url = "http://testserver/recording-status"
        signature = RequestValidator(settings.TWILIO_AUTH_TOKEN).compute_signature(url, COMPLETED_FORM)

        response = client.post(
            "/recording-status",
            data=COMPLETED_FORM,
            headers={"X-Twilio-Signature": signature},
        )

        assert response.status_code == 200
        pipeline.process_recording.assert_awaited_once()

    def test_uses_public_webhook_url(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(settings, "TWILIO_VALIDATE_SIGNATURE", True)
        monkeypatch.setattr(settings, "TWILIO_WEBHOOK_URL", "https://voice.example.test")
        url = "https://voice.example.test/recording-status"
        signature = RequestValidator(settings.TWILIO_AUTH_TOKEN).compute_signature(url, COMPLETED_FORM)

        response = client.post(
            "/recording-status",
            data=COMPLETED_FORM,
            headers={"X-Twilio-Signature": signature},
        )

        assert response.status_code == 200


# ============================================================================
# HEALTH
# ============================================================================

class TestHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_simple(self, client):
        assert client.get("/health/simple").json() == {"status": "ok"}

    def test_health_reports_checks(self, client):
        data = client.get("/health").json()

        assert data["checks"]["database"] == "ok"
        assert data["checks"]["config"]["database_configured"] is True
        assert "TWILIO_AUTH_TOKEN" not in str(data)
        assert settings.TWILIO_AUTH_TOKEN not in str(data)
