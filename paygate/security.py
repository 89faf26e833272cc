"""
Signature verification for settlement notifications.

The notifier signs `timestamp + "." + raw_body` with HMAC SHA-256 and sends
the hex digest in X-Signature (optionally prefixed with "sha256=") and the
Unix timestamp in X-Timestamp. Requests older than the replay window, or
dated in the future, are refused.
"""

import hmac
import hashlib
import time
from fastapi import Request, Header
from paygate.core.config import load_security_config
from paygate.core.exceptions import SecurityError
import logging

logger = logging.getLogger(__name__)

_security = load_security_config()

HMAC_SECRET = _security.hmac_secret_key

MAX_WEBHOOK_AGE_SECONDS = _security.max_webhook_age_seconds

MAX_CLOCK_SKEW_SECONDS = 5

SIGNATURE_CONTEXT = "settlement_authentication"


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    signed_payload = f"{timestamp}.".encode() + body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


async def verify_settlement_signature(
    request: Request,
    x_signature: str = Header(None),
    x_timestamp: str = Header(None),
):
    """
    FastAPI dependency guarding the settlement notifier endpoint.

    Raises:
        SecurityError: If the secret is not configured, a header is missing,
            the timestamp is outside the window, or the signature is wrong
    """
    if not HMAC_SECRET:
        logger.error("HMAC_SECRET_KEY is not configured; denying settlement notification")
        raise SecurityError("Settlement verification not configured", SIGNATURE_CONTEXT)

    if not x_signature:
        logger.warning("Missing signature header in settlement notification")
        raise SecurityError("Missing signature header", SIGNATURE_CONTEXT)

    if not x_timestamp:
        logger.warning("Missing timestamp header in settlement notification")
        raise SecurityError("Missing timestamp header", SIGNATURE_CONTEXT)

    try:
        request_timestamp = int(x_timestamp)
    except (ValueError, TypeError):
        raise SecurityError("Invalid timestamp format", SIGNATURE_CONTEXT)

    current_time = int(time.time())
    if request_timestamp > current_time + MAX_CLOCK_SKEW_SECONDS:
        raise SecurityError("Request timestamp is in the future", SIGNATURE_CONTEXT)

    age = current_time - request_timestamp
    if age > MAX_WEBHOOK_AGE_SECONDS:
        logger.warning(f"Settlement notification too old: {age}s (max: {MAX_WEBHOOK_AGE_SECONDS}s)")
        raise SecurityError("Request timestamp expired", SIGNATURE_CONTEXT)

    body = getattr(request.state, "body", None)
    if body is None:
        body = await request.body()

    expected_signature = compute_signature(HMAC_SECRET, x_timestamp, body)

    provided_signature = x_signature
    if provided_signature.startswith("sha256="):
        provided_signature = provided_signature[7:]

    if not hmac.compare_digest(expected_signature, provided_signature):
        logger.warning("Invalid signature in settlement notification")
        raise SecurityError("Invalid signature", SIGNATURE_CONTEXT)

    return True
