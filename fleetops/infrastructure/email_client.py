"""
EmailJS REST client.

Emails are informational: a failed send is logged and swallowed so it can
never roll back the business operation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from fleetops.config import settings

logger = logging.getLogger(__name__)


class EmailClient:
    """Sends templated emails through the EmailJS ``/email/send`` endpoint."""

    def __init__(
        self,
        service_id: Optional[str] = None,
        template_id: Optional[str] = None,
        public_key: Optional[str] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.service_id = service_id if service_id is not None else settings.emailjs_service_id
        self.template_id = template_id if template_id is not None else settings.emailjs_template_id
        self.public_key = public_key if public_key is not None else settings.emailjs_public_key
        self.url = url or settings.emailjs_url
        self.timeout = timeout or settings.email_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.service_id and self.template_id and self.public_key)

    async def send(
        self, to_email: str, subject: str, body: str, **params: Any
    ) -> bool:
        """
        Send one email.

        Returns True when EmailJS accepted the message, False when sending is
        disabled, the recipient is missing or the request failed.
        """
        if not self.enabled:
            logger.debug("Email disabled, skipping '%s' to %s", subject, to_email)
            return False
        if not to_email:
            logger.warning("No recipient for '%s', skipping", subject)
            return False

        template_params: Dict[str, Any] = {
            "to_email": to_email,
            "subject": subject,
            "message": body,
            **params,
        }
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": template_params,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "EmailJS rejected '%s' to %s (%s): %s",
                subject,
                to_email,
                e.response.status_code,
                e.response.text,
            )
            return False
        except httpx.HTTPError as e:
            logger.warning("Could not send '%s' to %s: %s", subject, to_email, e)
            return False
        logger.info("Sent '%s' to %s", subject, to_email)
        return True
