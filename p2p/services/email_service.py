"""
Brevo transactional e-mail delivery.

``BrevoMailer.send`` never raises for delivery problems: it reports the
outcome as a bool so the notification sink can log it and move on. Network
errors and 5xx answers are retried with back-off; 4xx answers are final.
"""

import logging
from typing import List, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from p2p.config import Settings

logger = structlog.get_logger()
_std_logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
DELIVERY_ATTEMPTS = 3


class _RetryableDeliveryError(Exception):
    """5xx or transport failure; worth another attempt."""


class BrevoMailer:
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        # Created on first use so one client (and its TLS pool) serves every send.
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0, connect=5.0))
        return self._client

    def _headers(self) -> dict:
        return {
            "api-key": self.settings.BREVO_API_KEY or "",
            "accept": "application/json",
            "content-type": "application/json",
        }

    async def _post(self, payload: dict, to_emails: List[str]) -> bool:
        try:
            response = await self.client.post(BREVO_API_URL, headers=self._headers(), json=payload)
        except httpx.TransportError as exc:
            logger.warning("email_network_error_retrying", error=str(exc), to=to_emails)
            raise _RetryableDeliveryError(str(exc)) from exc

        if response.status_code >= 500:
            logger.warning("email_brevo_5xx_retrying", status_code=response.status_code, to=to_emails)
            raise _RetryableDeliveryError(f"Brevo returned {response.status_code}")

        if response.status_code not in (201, 202):
            logger.error(
                "email_brevo_rejected",
                status_code=response.status_code,
                body=response.text[:500],
                to=to_emails,
            )
            return False

        logger.info("email_sent_brevo", to=to_emails, message_id=response.json().get("messageId"))
        return True

    async def send(self, to_emails: List[str], subject: str, html: str) -> bool:
        """Send one HTML e-mail; False when skipped or not accepted."""
        if not self.settings.BREVO_API_KEY:
            logger.warning("email_skipped_no_api_key", to=to_emails, subject=subject)
            return False
        if not to_emails:
            logger.warning("email_no_recipients", subject=subject)
            return False

        payload = {
            "sender": {"name": self.settings.APP_NAME, "email": self.settings.EMAIL_FROM_ADDRESS},
            "to": [{"email": e} for e in to_emails],
            "subject": subject,
            "htmlContent": html,
        }
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(_RetryableDeliveryError),
                stop=stop_after_attempt(DELIVERY_ATTEMPTS),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                before_sleep=before_sleep_log(_std_logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    delivered = await self._post(payload, to_emails)
        except _RetryableDeliveryError as exc:
            logger.error("email_delivery_failed", error=str(exc), to=to_emails)
            return False
        return delivered

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
