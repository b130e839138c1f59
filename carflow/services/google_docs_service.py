"""
Google Docs and Gmail Service
"""
import base64
import logging
from email.message import EmailMessage
from typing import Any

from .google_oauth import google_request

logger = logging.getLogger(__name__)

DOCS_API = "https://docs.googleapis.com/v1/documents"
GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"


async def create_document(access_token: str, title: str, content: str) -> dict[str, Any]:
    """Create a document and insert ``content`` at the start of its body"""
    document = await google_request("POST", DOCS_API, access_token, json={"title": title})
    document_id = document["documentId"]

    if content:
        await google_request(
            "POST",
            f"{DOCS_API}/{document_id}:batchUpdate",
            access_token,
            json={"requests": [{"insertText": {"location": {"index": 1}, "text": content}}]},
        )

    logger.info(f"✅ Google Doc created: {document_id} ({title})")
    return {
        "documentId": document_id,
        "documentUrl": f"https://docs.google.com/document/d/{document_id}/edit",
    }


async def send_email(access_token: str, to: str, subject: str, body: str) -> str:
    """Send a plain-text email as the connected Google account. Returns the message id."""
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    raw = base64.urlsafe_b64encode(message.as_bytes()).decode()
    result = await google_request("POST", GMAIL_SEND_URL, access_token, json={"raw": raw})

    logger.info(f"📧 Email sent via Gmail to {to}: {result.get('id')}")
    return result.get("id")
