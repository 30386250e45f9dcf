"""Typed access to the shared config document.

The config document is a flat key/value map written with merge semantics.
Several values are stored as JSON strings, matching what older clients
wrote. Reads and writes never raise: failures are logged, writes report a
``Failed`` outcome, reads fall back to None.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from .document_store import DocumentStore
from .errors import StoreError
from .models import EmailChannelConfig, Member
from .outcomes import Failed, Ok, Outcome, OutcomeLog

logger = logging.getLogger("sparkstock.config_store")

PASSWORD_KEY = "sparkstock_password"
WEBHOOK_KEY = "discord_webhook"
EMAIL_CONFIG_KEY = "emailjs_config"
MEMBERS_KEY = "discord_members"
ALERTED_KEY = "alerted_ids"
DIGEST_WATERMARK_KEY = "digest_last_sent_week"


def _loads(raw: Any, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed JSON config value")
        return default


class ConfigStore:
    def __init__(self, store: DocumentStore, path: str, outcomes: OutcomeLog | None = None):
        self.store = store
        self.path = path
        self.outcomes = outcomes or OutcomeLog()

    # -----------------------------------------------------------------
    # Raw access
    # -----------------------------------------------------------------

    async def load(self) -> dict[str, Any]:
        try:
            return await self.store.get_document(self.path) or {}
        except StoreError:
            logger.exception("Config load failed")
            return {}

    async def get(self, key: str) -> Any:
        data = await self.load()
        return data.get(key)

    async def set(self, key: str, value: Any) -> Outcome:
        try:
            await self.store.set_document(self.path, {key: value}, merge=True)
        except StoreError as e:
            logger.exception("Config save failed for %s", key)
            return self.outcomes.record(Failed("config", f"{key}: {e.reason}"))
        return self.outcomes.record(Ok("config", key))

    # -----------------------------------------------------------------
    # Typed accessors
    # -----------------------------------------------------------------

    async def get_secret(self) -> str | None:
        return (await self.get(PASSWORD_KEY)) or None

    async def set_secret(self, secret: str) -> Outcome:
        return await self.set(PASSWORD_KEY, secret)

    async def set_webhook(self, url: str) -> Outcome:
        return await self.set(WEBHOOK_KEY, url)

    async def set_email_config(self, cfg: EmailChannelConfig) -> Outcome:
        return await self.set(EMAIL_CONFIG_KEY, json.dumps(cfg.to_wire()))

    async def set_members(self, members: list[Member]) -> Outcome:
        return await self.set(MEMBERS_KEY, json.dumps([m.to_wire() for m in members]))

    async def set_alerted(self, keys: set[str]) -> Outcome:
        return await self.set(ALERTED_KEY, json.dumps(sorted(keys)))

    async def get_digest_watermark(self) -> str | None:
        return (await self.get(DIGEST_WATERMARK_KEY)) or None

    async def set_digest_watermark(self, week: str) -> Outcome:
        return await self.set(DIGEST_WATERMARK_KEY, week)


def parse_webhook(data: dict[str, Any]) -> str:
    return data.get(WEBHOOK_KEY) or ""


def parse_alerted(data: dict[str, Any]) -> set[str]:
    keys = _loads(data.get(ALERTED_KEY), [])
    return {str(k) for k in keys} if isinstance(keys, list) else set()


def parse_members(data: dict[str, Any]) -> list[Member]:
    raw = _loads(data.get(MEMBERS_KEY), [])
    members: list[Member] = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            members.append(Member.model_validate(entry))
        except ValidationError:
            logger.warning("Skipping invalid member entry in roster")
    return members


def parse_email_config(data: dict[str, Any]) -> EmailChannelConfig:
    raw = _loads(data.get(EMAIL_CONFIG_KEY), {})
    try:
        return EmailChannelConfig.model_validate(raw)
    except ValidationError:
        logger.warning("Ignoring invalid email channel config")
        return EmailChannelConfig()
