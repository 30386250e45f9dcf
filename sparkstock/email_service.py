"""Email delivery through EmailJS.

Digest emails are rendered by an EmailJS template; this module only posts
the template parameters. The sender must be initialized with the account's
public key before sending.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .outcomes import Failed, Ok, Outcome

logger = logging.getLogger("sparkstock.email")

# ---------------------------------------------------------------------------
# EmailJS REST client (no SDK dependency)
# ---------------------------------------------------------------------------

EMAILJS_API_URL = "https://api.emailjs.com/api/v1.0/email/send"


async def send_email(
    *,
    public_key: str,
    service_id: str,
    template_id: str,
    template_params: dict[str, Any],
    timeout: float = 10.0,
) -> str:
    """Send one templated email via the EmailJS REST API.

    Returns the response body ("OK" on success).
    Raises httpx.HTTPStatusError on failure.
    """
    payload = {
        "service_id": service_id,
        "template_id": template_id,
        "user_id": public_key,
        "template_params": template_params,
    }
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(
            EMAILJS_API_URL,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        resp.raise_for_status()
        logger.info(
            "Email sent to %s via %s/%s",
            template_params.get("to_email"),
            service_id,
            template_id,
        )
        return resp.text


class EmailSender:
    """Fire-and-forget email channel. ``send`` never raises."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self.public_key = ""

    def init(self, public_key: str) -> None:
        self.public_key = public_key.strip()
        logger.info("Email sender initialized")

    def reset(self) -> None:
        self.public_key = ""
        logger.info("Email sender reset")

    @property
    def initialized(self) -> bool:
        return bool(self.public_key)

    async def send(
        self, service_id: str, template_id: str, template_params: dict[str, Any]
    ) -> Outcome:
        if not self.initialized:
            return Failed("email", "sender not initialized with a public key")
        try:
            body = await send_email(
                public_key=self.public_key,
                service_id=service_id,
                template_id=template_id,
                template_params=template_params,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Email send failed: %s", e)
            return Failed("email", str(e) or type(e).__name__)
        return Ok("email", body)
