"""
Google OAuth Service
One authorization-code flow and token store shared by Calendar, Sheets,
Docs and Gmail.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from ..models import User
from ..models_google import GoogleIntegration
from ..security_utils import decrypt_token, encrypt_token, generate_timed_token, verify_timed_token

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"

USERINFO_SCOPE = "https://www.googleapis.com/auth/userinfo.email"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
DOCS_SCOPE = "https://www.googleapis.com/auth/documents"
GMAIL_SCOPE = "https://www.googleapis.com/auth/gmail.send"

SERVICE_SCOPES = {
    "calendar": [CALENDAR_SCOPE],
    "sheets": [SHEETS_SCOPE],
    "docs": [DOCS_SCOPE],
    "gmail": [GMAIL_SCOPE],
}
SERVICE_SCOPES["all"] = [scope for scopes in SERVICE_SCOPES.values() for scope in scopes]

STATE_SALT = "google-oauth-state"
STATE_MAX_AGE = 600  # seconds the user has to finish the consent screen
REQUEST_TIMEOUT = 20.0


def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=REQUEST_TIMEOUT)


def build_authorization_url(user: User, service: str) -> str:
    """Consent URL for ``service``; state is a signed token carrying the user id"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google integration not configured")
    if service not in SERVICE_SCOPES:
        raise HTTPException(
            status_code=400, detail=f"Unknown Google service. Use one of: {', '.join(SERVICE_SCOPES)}"
        )

    state = generate_timed_token({"uid": user.id, "service": service}, salt=STATE_SALT)
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join([USERINFO_SCOPE, *SERVICE_SCOPES[service]]),
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "state": state,
    }
    logger.info(f"Google OAuth ({service}) initiated for user: {user.username}")
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def parse_state(state: Optional[str]) -> dict[str, Any]:
    data = verify_timed_token(state, max_age=STATE_MAX_AGE, salt=STATE_SALT) if state else None
    if not data or "uid" not in data:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")
    return data


async def exchange_code(code: str) -> dict[str, Any]:
    async with http_client() as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
    if response.status_code != 200:
        logger.error(f"❌ Token exchange failed: {response.text}")
        raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

    tokens = response.json()
    if not tokens.get("access_token"):
        raise HTTPException(status_code=400, detail="Invalid token response")
    return tokens


async def fetch_user_email(access_token: str) -> Optional[str]:
    async with http_client() as client:
        response = await client.get(
            GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
        )
    if response.status_code != 200:
        logger.warning(f"⚠️ Failed to get Google user info: {response.text}")
        return None
    return response.json().get("email")


def get_integration(db: Session, user_id: int) -> Optional[GoogleIntegration]:
    return db.query(GoogleIntegration).filter(GoogleIntegration.user_id == user_id).first()


def save_integration(
    db: Session, user_id: int, tokens: dict[str, Any], google_email: Optional[str]
) -> GoogleIntegration:
    """Encrypt and upsert tokens. Scopes accumulate across per-service connects."""
    access_token = tokens["access_token"]
    refresh_token = tokens.get("refresh_token")
    expires_at = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    granted = set((tokens.get("scope") or "").split())

    integration = get_integration(db, user_id)
    if integration:
        integration.access_token = encrypt_token(access_token)
        # Google omits the refresh token on re-consent sometimes; keep the old one
        if refresh_token:
            integration.refresh_token = encrypt_token(refresh_token)
        integration.token_expires_at = expires_at
        integration.scopes = " ".join(sorted(granted | set((integration.scopes or "").split())))
        if google_email:
            integration.google_user_email = google_email
    else:
        if not refresh_token:
            raise HTTPException(status_code=400, detail="Google did not return a refresh token")
        integration = GoogleIntegration(
            user_id=user_id,
            access_token=encrypt_token(access_token),
            refresh_token=encrypt_token(refresh_token),
            token_expires_at=expires_at,
            scopes=" ".join(sorted(granted)),
            google_user_email=google_email,
            google_calendar_id="primary",
        )
        db.add(integration)

    db.commit()
    db.refresh(integration)
    return integration


async def get_valid_access_token(integration: GoogleIntegration, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    if integration.token_expires_at > datetime.utcnow() + timedelta(minutes=5):
        return decrypt_token(integration.access_token)

    logger.info("🔄 Google token expired, refreshing...")
    refresh_token = decrypt_token(integration.refresh_token)
    if not refresh_token:
        return None

    try:
        async with http_client() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Token refresh request failed: {e}")
        return None

    if response.status_code != 200:
        logger.error(f"❌ Token refresh failed: {response.text}")
        return None

    tokens = response.json()
    new_access_token = tokens.get("access_token")
    if not new_access_token:
        logger.error("❌ No access token in refresh response")
        return None

    integration.access_token = encrypt_token(new_access_token)
    integration.token_expires_at = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    db.commit()
    logger.info("✅ Google token refreshed successfully")
    return new_access_token


async def require_access_token(db: Session, user: User, scope: Optional[str] = None) -> str:
    """Access token for ``user`` or an HTTP error explaining why there is none"""
    integration = get_integration(db, user.id)
    if not integration:
        raise HTTPException(status_code=409, detail="Google account not connected")
    if scope and integration.scopes and not integration.has_scope(scope):
        raise HTTPException(
            status_code=409, detail="Google account connected without the required permission"
        )

    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        raise HTTPException(status_code=502, detail="Could not refresh Google access token")
    return access_token


async def google_request(
    method: str, url: str, access_token: str, expected: tuple[int, ...] = (200,), **kwargs
) -> dict[str, Any]:
    """Call a Google REST endpoint; non-expected statuses become 502"""
    try:
        async with http_client() as client:
            response = await client.request(
                method, url, headers={"Authorization": f"Bearer {access_token}"}, **kwargs
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Google API request failed: {method} {url}: {e}")
        raise HTTPException(status_code=502, detail="Google API request failed") from e

    if response.status_code not in expected:
        logger.error(f"❌ Google API {method} {url} → {response.status_code}: {response.text[:500]}")
        raise HTTPException(status_code=502, detail=f"Google API error ({response.status_code})")

    if response.status_code == 204 or not response.content:
        return {}
    return response.json()


async def revoke(integration: GoogleIntegration) -> None:
    """Best-effort token revocation"""
    access_token = decrypt_token(integration.access_token)
    if not access_token:
        return
    try:
        async with http_client() as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": access_token})
    except httpx.HTTPError as e:
        logger.warning(f"Failed to revoke Google tokens: {str(e)}")
