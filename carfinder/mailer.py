# carfinder/mailer.py
"""Outbound email through the Resend HTTP API."""
from typing import List, Optional, Union

import httpx

from . import settings
from .utils import logger, retry

RESEND_API_URL = "https://api.resend.com/emails"


class MailerError(RuntimeError):
    pass


class ResendClient:
    def __init__(self, api_key: str, default_from: str, timeout: float = 10.0,
                 client: Optional[httpx.Client] = None):
        self.api_key = api_key
        self.default_from = default_from
        self._client = client or httpx.Client(timeout=timeout)

    @retry(httpx.TransportError, tries=3, delay=1, backoff=2, target="resend")
    def send(self, to: Union[str, List[str]], subject: str, html: str, text: Optional[str] = None,
             from_: Optional[str] = None) -> dict:
        payload = {
            "from": from_ or self.default_from,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        response = self._client.post(
            RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if response.is_error:
            raise MailerError(
                f"Resend API error: {response.status_code} {response.reason_phrase} - {response.text}"
            )
        logger.debug("Sent email %r to %s", subject, payload["to"])
        return response.json()

    def close(self):
        self._client.close()


_client: Optional[ResendClient] = None


def get_mailer() -> ResendClient:
    global _client
    if _client is None:
        if not settings.RESEND_API_KEY:
            raise MailerError("RESEND_API_KEY is not set.")
        if not settings.RESEND_FROM_EMAIL:
            raise MailerError("RESEND_FROM_EMAIL is not set.")
        _client = ResendClient(settings.RESEND_API_KEY, settings.RESEND_FROM_EMAIL)
    return _client
