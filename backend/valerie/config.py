# backend/valerie/config.py
import os
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parents[1]   # backend/
REPO_DIR = BACKEND_DIR.parent                        # repo root

ENV_BACKEND = BACKEND_DIR / ".env"
ENV_REPO = REPO_DIR / ".env"
ENV_FILE = ENV_BACKEND if ENV_BACKEND.exists() else ENV_REPO

load_dotenv(dotenv_path=str(ENV_FILE), override=True)


def _build_database_url() -> str:
    """Build PostgreSQL URL for Supabase or use DATABASE_URL directly."""
    direct_url = os.getenv("DATABASE_URL")
    if direct_url:
        return direct_url

    host = os.getenv("DB_HOST", "127.0.0.1")
    port = os.getenv("DB_PORT", "5432")
    user = os.getenv("DB_USER", "postgres")
    password_raw = os.getenv("DB_PASSWORD", "")
    db = os.getenv("DB_NAME", "postgres")
    password = quote_plus(password_raw)
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


def _env_bool(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


class Settings:
    DATABASE_URL: str = _build_database_url()

    PORT: int = int(os.getenv("PORT", "3000"))
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # ================= Twilio Configuration =================
    TWILIO_ACCOUNT_SID: str | None = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: str | None = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER: str | None = os.getenv("TWILIO_PHONE_NUMBER")

    # Public base URL Twilio uses to reach us (needed for signature validation behind proxies)
    TWILIO_WEBHOOK_URL: str | None = os.getenv("TWILIO_WEBHOOK_URL")
    TWILIO_VALIDATE_SIGNATURE: bool = _env_bool("TWILIO_VALIDATE_SIGNATURE")

    # Cap on a single recording, in seconds (5 minutes)
    MAX_RECORDING_SECONDS: int = int(os.getenv("MAX_RECORDING_SECONDS", "300"))
    RECORDING_DOWNLOAD_TIMEOUT: float = float(os.getenv("RECORDING_DOWNLOAD_TIMEOUT", "60"))

    # ================= OpenAI Configuration =================
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_STT_MODEL: str = os.getenv("OPENAI_STT_MODEL", "whisper-1")
    OPENAI_SUMMARY_MODEL: str = os.getenv("OPENAI_SUMMARY_MODEL", "gpt-4o-mini")
    OPENAI_QUOTA_CHECK_MODEL: str = os.getenv("OPENAI_QUOTA_CHECK_MODEL", "gpt-4o-mini")
    OPENAI_TTS_MODEL: str = os.getenv("OPENAI_TTS_MODEL", "tts-1")
    OPENAI_TTS_VOICE: str = os.getenv("OPENAI_TTS_VOICE", "nova")

    # Large recordings can take minutes to upload and transcribe
    OPENAI_TRANSCRIPTION_TIMEOUT: float = float(os.getenv("OPENAI_TRANSCRIPTION_TIMEOUT", "600"))

    # Probe the OpenAI quota before downloading anything
    QUOTA_PRECHECK_ENABLED: bool = _env_bool("QUOTA_PRECHECK_ENABLED")

    # ================= Object Storage (S3-compatible, e.g. Supabase Storage) =================
    STORAGE_ENDPOINT_URL: str | None = os.getenv("STORAGE_ENDPOINT_URL")
    STORAGE_PUBLIC_BASE_URL: str | None = os.getenv("STORAGE_PUBLIC_BASE_URL")
    STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "recordings")
    STORAGE_REGION: str = os.getenv("STORAGE_REGION", "us-east-1")
    STORAGE_ACCESS_KEY_ID: str | None = os.getenv("STORAGE_ACCESS_KEY_ID")
    STORAGE_SECRET_ACCESS_KEY: str | None = os.getenv("STORAGE_SECRET_ACCESS_KEY")


settings = Settings()


# =============================================================================
# CONFIGURATION VALIDATION
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(raise_on_error: bool = True) -> dict:
    """
    Validate all configuration settings.

    Args:
        raise_on_error: If True, raises ConfigValidationError on critical errors.
                       If False, returns dict with errors and warnings.

    Returns:
        Dict with 'errors' (critical) and 'warnings' (non-critical) lists.

    Raises:
        ConfigValidationError: If raise_on_error=True and critical errors found.
    """
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is required")

    # Required to download recordings
    if not settings.TWILIO_ACCOUNT_SID:
        errors.append("TWILIO_ACCOUNT_SID is required to download recordings")
    if not settings.TWILIO_AUTH_TOKEN:
        errors.append("TWILIO_AUTH_TOKEN is required to download recordings")

    if not settings.OPENAI_API_KEY:
        errors.append("OPENAI_API_KEY is required for transcription and summaries")
    if not settings.STORAGE_ENDPOINT_URL:
        errors.append("STORAGE_ENDPOINT_URL is required to store recordings")

    # Warnings - Degraded functionality
    if not settings.TWILIO_PHONE_NUMBER:
        warnings.append("TWILIO_PHONE_NUMBER missing - summary callbacks disabled")
    if not settings.STORAGE_PUBLIC_BASE_URL:
        warnings.append("STORAGE_PUBLIC_BASE_URL missing - public URLs built from STORAGE_ENDPOINT_URL")
    if settings.TWILIO_VALIDATE_SIGNATURE and not settings.TWILIO_WEBHOOK_URL:
        warnings.append("TWILIO_WEBHOOK_URL not set - signatures validated against request URL")

    if settings.ENVIRONMENT == "production" and not settings.TWILIO_VALIDATE_SIGNATURE:
        warnings.append("TWILIO_VALIDATE_SIGNATURE disabled in production")

    result = {"errors": errors, "warnings": warnings}

    if raise_on_error and errors:
        raise ConfigValidationError(f"Configuration errors: {'; '.join(errors)}")

    return result


def get_config_status() -> dict:
    """Configuration presence flags for the health endpoint. Never includes secrets."""
    return {
        "environment": settings.ENVIRONMENT,
        "database_configured": bool(settings.DATABASE_URL),
        "twilio_configured": all([
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
        ]),
        "callback_configured": bool(settings.TWILIO_PHONE_NUMBER),
        "openai_configured": bool(settings.OPENAI_API_KEY),
        "storage_configured": bool(settings.STORAGE_ENDPOINT_URL),
        "webhook_security_enabled": settings.TWILIO_VALIDATE_SIGNATURE,
        "quota_precheck_enabled": settings.QUOTA_PRECHECK_ENABLED,
    }
