"""Transactional email via the Resend HTTP API.

Returns a result dict instead of raising so callers can record delivery
state (``emailSent``/``emailError``) on the notification row.
"""

import html
import logging

import httpx

from app.core.async_utils import run_async
from app.core.config import settings
from app.services.http_service import DEFAULT_RETRY_STATUSES, request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RESEND_TIMEOUT_SECONDS = 20.0


def sender_configured() -> bool:
    return bool(settings.EMAIL_PROVIDER_API_KEY and settings.EMAIL_FROM)


def render_notification_html(title: str, message: str, action_url: str | None, action_text: str | None) -> str:
    body = f"<h2>{html.escape(title)}</h2><p>{html.escape(message)}</p>"
    if action_url:
        label = html.escape(action_text or "View details")
        body += f'<p><a href="{html.escape(action_url, quote=True)}">{label}</a></p>'
    return body


async def send_email_async(
    *,
    to_email: str,
    subject: str,
    html_body: str,
    text: str | None = None,
    idempotency_key: str | None = None,
) -> dict:
    if not sender_configured():
        return {"success": False, "error": "Email sender not configured"}

    payload: dict[str, object] = {
        "from": settings.EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html_body,
    }
    if text:
        payload["text"] = text

    headers = {
        "Authorization": f"Bearer {settings.EMAIL_PROVIDER_API_KEY}",
        "Content-Type": "application/json",
    }
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key

    try:
        async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:

            async def request_fn() -> httpx.Response:
                return await client.post(RESEND_SEND_URL, headers=headers, json=payload)

            response = await request_with_retries(
                request_fn,
                max_attempts=RESEND_MAX_ATTEMPTS,
                base_delay=RESEND_RETRY_BASE_DELAY,
                max_delay=RESEND_RETRY_MAX_DELAY,
                retry_statuses=DEFAULT_RETRY_STATUSES,
            )
    except httpx.HTTPError as exc:
        logger.warning("Email send failed: %s", type(exc).__name__)
        return {"success": False, "error": f"Email transport error: {type(exc).__name__}"}

    if 200 <= response.status_code < 300:
        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        return {"success": True, "message_id": message_id}

    # Resend uses 409 for idempotency conflicts: the message already went out
    if response.status_code == 409:
        return {"success": True}

    detail = None
    try:
        data = response.json()
        if isinstance(data, dict):
            detail = data.get("message") or data.get("error")
    except ValueError:
        detail = None

    if detail:
        return {"success": False, "error": f"Email API error: {response.status_code} ({detail})"}
    return {"success": False, "error": f"Email API error: {response.status_code}"}


def send_email(
    *,
    to_email: str,
    subject: str,
    html_body: str,
    text: str | None = None,
    idempotency_key: str | None = None,
) -> dict:
    """Synchronous wrapper used by the notification router."""
    if not sender_configured():
        return {"success": False, "error": "Email sender not configured"}
    return run_async(
        send_email_async(
            to_email=to_email,
            subject=subject,
            html_body=html_body,
            text=text,
            idempotency_key=idempotency_key,
        ),
        timeout=RESEND_TIMEOUT_SECONDS * RESEND_MAX_ATTEMPTS,
    )
