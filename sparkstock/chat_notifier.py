"""Chat webhook delivery (Discord-compatible embeds)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .outcomes import Failed, Ok, Outcome

logger = logging.getLogger("sparkstock.chat")


async def send_webhook(
    url: str, message: dict[str, Any], *, timeout: float = 10.0
) -> Outcome:
    """POST a structured message to a webhook. Never raises."""
    if not url:
        return Failed("chat", "no webhook configured")
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(
                url,
                json=message,
                headers={"Content-Type": "application/json"},
            )
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Webhook post failed: %s", e)
        return Failed("chat", str(e) or type(e).__name__)
    logger.info("Webhook message posted (%d)", resp.status_code)
    return Ok("chat", str(resp.status_code))


class ChatNotifier:
    def __init__(self, url: str = "", timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def post(self, message: dict[str, Any]) -> Outcome:
        return await send_webhook(self.url, message, timeout=self.timeout)
