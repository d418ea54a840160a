# src/timesync_api/email_utils.py

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from .config import settings

logger = logging.getLogger(__name__)

NAME_PLACEHOLDER = "[Name]"


class EmailSendError(Exception):
    """Raised when SendGrid refuses or cannot receive a message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def personalize_html(html: str, name: Optional[str]) -> str:
    if not name:
        return html
    return html.replace(NAME_PLACEHOLDER, name)


def build_message(to: Union[str, List[str]], subject: str, html: str) -> Dict[str, Any]:
    """SendGrid v3 mail/send payload. `to` is one address or a list of them."""
    addresses = to if isinstance(to, list) else [to]
    return {
        "personalizations": [{"to": [{"email": address} for address in addresses]}],
        "from": {
            "email": settings.SENDGRID_FROM_EMAIL,
            "name": settings.SENDGRID_FROM_NAME,
        },
        "subject": subject,
        "content": [{"type": "text/html", "value": html}],
    }


def build_batch_messages(batch: List[Dict[str, Any]], subject: str, html: str) -> List[Dict[str, Any]]:
    return [
        build_message(recipient.get("email"), subject, personalize_html(html, recipient.get("name")))
        for recipient in batch
    ]


async def send_messages(client: httpx.AsyncClient, messages: List[Dict[str, Any]]) -> None:
    """Sends each message in order; the first failure aborts the rest."""
    headers = {
        "Authorization": f"Bearer {settings.SENDGRID_API_KEY}",
        "Content-Type": "application/json",
    }
    for message in messages:
        try:
            response = await client.post(settings.SENDGRID_API_URL, headers=headers, json=message)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            try:
                errors = e.response.json().get("errors") or []
                if errors:
                    detail = "; ".join(str(err.get("message", err)) for err in errors)
            except (ValueError, AttributeError):
                pass
            logger.error("SendGrid: HTTP %s - %s", e.response.status_code, detail)
            raise EmailSendError(detail, e.response.status_code) from e
        except httpx.RequestError as e:
            logger.error("SendGrid: Request error: %s", e)
            raise EmailSendError(str(e)) from e
    logger.info("SendGrid: Sent %d message(s)", len(messages))
