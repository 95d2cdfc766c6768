# backend/valerie/utils/twilio_signature.py
"""
Twilio Request Signature Verification

Verifies that webhook requests come from Twilio (X-Twilio-Signature).
Enabled with TWILIO_VALIDATE_SIGNATURE=true.

Reference: https://www.twilio.com/docs/usage/security#validating-requests
"""
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse

from twilio.request_validator import RequestValidator

from valerie.config import settings
from valerie.utils.logger import logger


def validate_twilio_signature(
    signature: str,
    url: str,
    params: Dict[str, str],
    auth_token: Optional[str] = None,
) -> bool:
    """
    Validate that a request came from Twilio by verifying its signature.

    Args:
        signature: The X-Twilio-Signature header value
        url: The full URL of the webhook (must match what Twilio used)
        params: The POST parameters from the request
        auth_token: Twilio auth token (defaults to settings.TWILIO_AUTH_TOKEN)

    Returns:
        bool: True if signature is valid, False otherwise
    """
    if not signature:
        logger.warning("[Twilio Security] No X-Twilio-Signature header provided")
        return False

    token = auth_token or settings.TWILIO_AUTH_TOKEN
    if not token:
        logger.error("[Twilio Security] TWILIO_AUTH_TOKEN not configured")
        return False

    is_valid = RequestValidator(token).validate(url, params, signature)
    if not is_valid:
        logger.warning(f"[Twilio Security] Invalid signature for URL: {url}")
    return is_valid


def get_webhook_url_for_validation(request_url: str) -> str:
    """
    The URL Twilio signed. Behind a proxy/ngrok the app sees a different host,
    so the configured TWILIO_WEBHOOK_URL base replaces it when set.
    """
    base_url = (settings.TWILIO_WEBHOOK_URL or "").strip()
    if not base_url:
        return request_url

    parsed = urlparse(request_url)
    path = parsed.path
    if parsed.query:
        path += f"?{parsed.query}"

    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))
