"""Transactional email sender (Resend-compatible HTTP API over httpx).

``EmailSender.send`` never raises: configuration gaps come back as
``skipped`` and transport or API failures as ``ok=False`` with an error
string, so callers on the notification path can log and move on.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from concierge.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    ok: bool
    error: Optional[str] = None
    skipped: bool = False
    message_id: Optional[str] = None


class EmailSender:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        reply_to: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.reply_to = reply_to
        self.timeout = timeout
        self._transport = transport

    def send(
        self,
        to: Union[str, list[str], None],
        subject: str,
        html: str,
        reply_to: Optional[str] = None,
        event_key: Optional[str] = None,
    ) -> EmailResult:
        if not self.api_key:
            return EmailResult(ok=False, skipped=True, error="EMAIL_API_KEY missing")
        if not self.sender:
            return EmailResult(ok=False, skipped=True, error="EMAIL_FROM missing")
        if not to:
            return EmailResult(ok=False, skipped=True, error="No recipient")

        payload = {
            "from": self.sender,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html,
        }
        effective_reply_to = reply_to or self.reply_to
        if effective_reply_to:
            payload["reply_to"] = effective_reply_to

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Email send failed for %s: %s", event_key, exc)
            return EmailResult(ok=False, error=str(exc))

        if resp.status_code >= 400:
            logger.warning("Email API returned %d for %s: %s", resp.status_code, event_key, resp.text[:300])
            return EmailResult(ok=False, error=f"HTTP {resp.status_code}")

        try:
            message_id = resp.json().get("id")
        except ValueError:
            message_id = None
        logger.info("Email sent for %s", event_key)
        return EmailResult(ok=True, message_id=message_id)


_default_sender = EmailSender(
    api_url=settings.EMAIL_API_URL,
    api_key=settings.EMAIL_API_KEY,
    sender=settings.EMAIL_FROM,
    reply_to=settings.EMAIL_REPLY_TO,
    timeout=settings.EMAIL_TIMEOUT_SECONDS,
)


def get_email_sender() -> EmailSender:
    """FastAPI dependency; tests override it with a recorder."""
    return _default_sender
