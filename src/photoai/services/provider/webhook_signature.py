"""HMAC signature validation for Replicate webhooks.

Replicate signs every webhook delivery following the Standard Webhooks scheme:
the signed content is "{webhook-id}.{webhook-timestamp}.{body}", the key is the
base64 part of the "whsec_" secret, and the webhook-signature header carries one or
more space-separated "v1,<base64 signature>" entries.

Security Note:
    validate_replicate_signature MUST be called before processing any webhook
    payload. Return 401 Unauthorized immediately if validation fails.
"""

import base64
import binascii
import hashlib
import hmac
import time

SECRET_PREFIX = "whsec_"
DEFAULT_TOLERANCE_SECONDS = 300


def _signing_key(signing_secret: str) -> bytes:
    secret = signing_secret.removeprefix(SECRET_PREFIX)
    return base64.b64decode(secret)


def compute_signature(raw_body: bytes, webhook_id: str, timestamp: str, signing_secret: str) -> str:
    """Compute the base64 HMAC-SHA256 signature Replicate would send for a delivery."""
    signed_content = f"{webhook_id}.{timestamp}.".encode("utf-8") + raw_body
    digest = hmac.new(
        key=_signing_key(signing_secret), msg=signed_content, digestmod=hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def validate_replicate_signature(
    raw_body: bytes,
    webhook_id: str,
    timestamp: str,
    signature_header: str,
    signing_secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Validate a Replicate webhook signature.

    Args:
        raw_body: Raw request body bytes (NOT parsed JSON). Must be the exact
            bytes received from the request.
        webhook_id: Value of the webhook-id header
        timestamp: Value of the webhook-timestamp header (unix seconds)
        signature_header: Value of the webhook-signature header
        signing_secret: Webhook signing secret ("whsec_..." from Replicate)
        tolerance_seconds: Maximum allowed clock skew, protects against replays
        now: Current unix time (defaults to time.time())

    Returns:
        True if any signature in the header matches and the timestamp is fresh.

    Security:
        - Uses hmac.compare_digest() for constant-time comparison.
        - Rejects deliveries whose timestamp is outside the tolerance window.
    """
    if not signing_secret or not webhook_id or not timestamp or not signature_header:
        return False

    try:
        sent_at = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - sent_at) > tolerance_seconds:
        return False

    try:
        expected = compute_signature(raw_body, webhook_id, timestamp, signing_secret)
    except (binascii.Error, ValueError):
        return False

    for entry in signature_header.split():
        version, _, candidate = entry.partition(",")
        if version != "v1" or not candidate:
            continue
        if hmac.compare_digest(expected, candidate):
            return True

    return False
