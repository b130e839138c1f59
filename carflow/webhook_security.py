"""
Webhook Security Module

Signature verification for inbound n8n webhooks:
- Constant-time signature comparison
- Optional timestamp validation against replays
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

from .config import N8N_WEBHOOK_SECRET

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload (hex)"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """Reject stale webhooks. A missing timestamp is accepted."""
    if not timestamp:
        return True

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


async def verify_n8n_webhook(request: Request) -> bytes:
    """
    FastAPI dependency: verify the HMAC signature of an inbound n8n webhook.

    Verification is skipped when N8N_WEBHOOK_SECRET is not configured.
    Returns the raw body.
    """
    body = await request.body()
    if not N8N_WEBHOOK_SECRET:
        return body

    signature = request.headers.get(SIGNATURE_HEADER, "")
    if signature.startswith("sha256="):
        signature = signature[7:]

    expected = compute_hmac_sha256(N8N_WEBHOOK_SECRET, body)
    if not constant_time_compare(signature, expected):
        logger.warning(f"🚫 Invalid n8n webhook signature on {request.url.path}")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    if not verify_timestamp(request.headers.get(TIMESTAMP_HEADER)):
        raise HTTPException(status_code=401, detail="Webhook timestamp expired")

    return body
