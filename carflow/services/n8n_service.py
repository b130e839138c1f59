"""
n8n Service
Outbound relay of JSON payloads to n8n webhook URLs
"""
import json
import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from fastapi import HTTPException

from ..config import N8N_REQUEST_TIMEOUT, N8N_WEBHOOK_SECRET, N8N_WEBHOOK_URL
from ..webhook_security import SIGNATURE_HEADER, compute_hmac_sha256

logger = logging.getLogger(__name__)


def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=N8N_REQUEST_TIMEOUT)


async def send_to_n8n(data: Any, url: Optional[str] = None) -> dict[str, Any]:
    """
    POST ``data`` to an n8n webhook. Signed with N8N_WEBHOOK_SECRET when set.

    Returns {"status": int, "response": parsed body}. Raises 502 on
    network errors and non-2xx answers.
    """
    target = url or N8N_WEBHOOK_URL
    if not target:
        raise HTTPException(status_code=400, detail="No n8n webhook URL provided")

    body = json.dumps(data, default=str).encode()
    headers = {"Content-Type": "application/json"}
    if N8N_WEBHOOK_SECRET:
        headers[SIGNATURE_HEADER] = compute_hmac_sha256(N8N_WEBHOOK_SECRET, body)

    try:
        async with http_client() as client:
            response = await client.post(target, content=body, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"❌ n8n relay to {target} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to reach n8n: {e}") from e

    if response.status_code >= 400:
        logger.error(f"❌ n8n relay to {target} → {response.status_code}: {response.text[:300]}")
        raise HTTPException(
            status_code=502, detail=f"n8n responded with status {response.status_code}"
        )

    try:
        parsed = response.json()
    except ValueError:
        parsed = response.text

    logger.info(f"📤 Relayed payload to n8n ({response.status_code}) at {datetime.utcnow().isoformat()}")
    return {"status": response.status_code, "response": parsed}
