"""Inventory engine: the single state container.

Owns the canonical item list, member roster, channel settings and the
session context, and wires the pieces together:

    remote snapshot -> Reconciler -> canonical items -> AlertTracker -> chat
    60 s timer      -> DigestScheduler -> send_digests -> chat + email

Local writes (add/edit/delete item, commit quantity, member cascade) update
canonical state first, stamp the write so its echo is absorbed, and then
re-run alert evaluation. Nothing raises out of the public methods: remote
failures become ``Failed`` outcomes in ``engine.outcomes``.

Usage:
    engine = InventoryEngine(create_store(settings), settings)
    await engine.start()
    engine.propose_quantity(item_id, 4)
    await engine.commit_quantity(item_id)
    await engine.stop()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .access_gate import AccessGate
from .alerts import AlertTracker
from .chat_notifier import ChatNotifier
from .config import EngineSettings, get_settings
from .config_store import (
    ConfigStore,
    parse_alerted,
    parse_email_config,
    parse_members,
    parse_webhook,
)
from .digest import build_alert_message, send_digests
from .digest_scheduler import DigestScheduler
from .document_store import DocumentStore, Subscription
from .email_service import EmailSender
from .errors import StoreError
from .models import EmailChannelConfig, Item, Member
from .outcomes import Failed, Ok, Outcome, OutcomeLog
from .reconciliation import Reconciler
from .session import SessionContext
from .status import StockTier, classify, classify_item

logger = logging.getLogger("sparkstock.engine")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InventoryEngine:
    def __init__(
        self,
        store: DocumentStore,
        settings: EngineSettings | None = None,
        *,
        chat: ChatNotifier | None = None,
        email: EmailSender | None = None,
        clock: Callable[[], datetime] = _utc_now,
        writer_id: str | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.clock = clock
        self.outcomes = OutcomeLog()
        self.config = ConfigStore(store, self.settings.config_path, self.outcomes)
        self.session = SessionContext()
        self.gate = AccessGate(self.config, self.session)
        self.reconciler = Reconciler(writer_id)
        self.tracker = AlertTracker()
        self.chat = chat or ChatNotifier(timeout=self.settings.http_timeout)
        self.email = email or EmailSender(timeout=self.settings.http_timeout)
        self.email_config = EmailChannelConfig()
        self.scheduler = DigestScheduler(
            config=self.config,
            send=self.send_digests,
            tz=self.settings.digest_timezone,
            weekday=self.settings.digest_weekday,
            hour=self.settings.digest_hour,
            minute=self.settings.digest_minute,
            check_interval=self.settings.digest_check_interval,
            clock=clock,
        )

        self.items: list[Item] = []
        self.members: list[Member] = []
        self.storage_ready = False
        self.last_synced: datetime | None = None
        self._subscription: Subscription | None = None

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def start(self) -> None:
        """Load settings, then subscribe to the inventory document.

        The digest scheduler and alert tracking start once the first
        snapshot (or subscription error) arrives.
        """
        await self.load_settings()
        await self.gate.load()
        self._subscription = await self.store.subscribe(
            self.settings.inventory_path, self._on_snapshot, self._on_snapshot_error
        )
        logger.info("Engine started (writer=%s)", self.reconciler.writer_id)

    async def stop(self) -> None:
        """Tear down the subscription and the digest scheduler together."""
        self.scheduler.stop()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        logger.info("Engine stopped")

    async def __aenter__(self) -> InventoryEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def load_settings(self) -> None:
        data = await self.config.load()
        self.chat.url = parse_webhook(data)
        self.tracker.load_fired(parse_alerted(data))
        self.members = parse_members(data)
        self.email_config = parse_email_config(data)
        if self.email_config.public_key:
            self.email.init(self.email_config.public_key)

    # -----------------------------------------------------------------
    # Remote feed
    # -----------------------------------------------------------------

    async def _on_snapshot(self, data: dict[str, Any] | None) -> None:
        result = self.reconciler.reconcile(data, self.items, self.session.edits)
        self.last_synced = self.clock()
        if result.changed:
            self.items = result.items
        first_load = not self.storage_ready
        self._mark_ready()
        if result.changed or first_load:
            await self._evaluate_alerts()

    async def _on_snapshot_error(self, exc: Exception) -> None:
        logger.error("Inventory subscription error: %s", exc)
        self.outcomes.record(Failed("sync", str(exc)))
        first_load = not self.storage_ready
        self._mark_ready()
        if first_load:
            await self._evaluate_alerts()

    def _mark_ready(self) -> None:
        if self.storage_ready:
            return
        self.storage_ready = True
        self.tracker.mark_ready()
        self.scheduler.start()

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_item(self, item_id: str) -> Item | None:
        return next((i for i in self.items if i.id == item_id), None)

    def get_member(self, member_id: str) -> Member | None:
        if not member_id:
            return None
        return next((m for m in self.members if m.id == member_id), None)

    def tier(self, item: Item) -> StockTier:
        """Tier from the canonical quantity (what alerting sees)."""
        return classify_item(item)

    def effective_quantity(self, item_id: str) -> float | None:
        item = self.get_item(item_id)
        if item is None:
            return None
        return self.session.edits.get(item_id, item.quantity)

    def display_tier(self, item_id: str) -> StockTier | None:
        """Tier from the effective quantity (pending edit if any)."""
        item = self.get_item(item_id)
        if item is None:
            return None
        return classify(self.session.edits.get(item_id, item.quantity), item.low_stock_threshold)

    @property
    def low_count(self) -> int:
        return sum(1 for i in self.items if classify_item(i).is_alerting)

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    async def _write_items(self, items: list[Item]) -> Outcome:
        stamp = self.reconciler.arm()
        self.items = items
        doc = {"items": [i.to_wire() for i in items], **stamp.as_fields()}
        try:
            await self.store.set_document(self.settings.inventory_path, doc)
        except StoreError as e:
            logger.exception("Inventory save failed (seq %d)", stamp.seq)
            outcome = self.outcomes.record(Failed("inventory", e.reason))
        else:
            outcome = self.outcomes.record(Ok("inventory", f"seq {stamp.seq}"))
        await self._evaluate_alerts()
        return outcome

    async def add_item(self, **fields: Any) -> Item | None:
        """Create an item. Returns None (and writes nothing) on invalid input."""
        if not str(fields.get("name", "")).strip():
            return None
        try:
            item = Item.create(**fields)
        except ValidationError:
            logger.debug("Rejected invalid new item")
            return None
        await self._write_items([*self.items, item])
        return item

    async def edit_item(self, updated: Item) -> bool:
        """Replace every field of an existing item."""
        if not updated.name.strip() or self.get_item(updated.id) is None:
            return False
        await self._write_items([updated if i.id == updated.id else i for i in self.items])
        return True

    async def delete_item(self, item_id: str) -> bool:
        if self.get_item(item_id) is None:
            return False
        self.session.edits.drop(item_id)
        await self._write_items([i for i in self.items if i.id != item_id])
        return True

    # -----------------------------------------------------------------
    # Quick quantity adjust
    # -----------------------------------------------------------------

    def propose_quantity(self, item_id: str, value: Any) -> bool:
        if self.get_item(item_id) is None:
            return False
        return self.session.edits.propose(item_id, value)

    def adjust_quantity(self, item_id: str, delta: float) -> float | None:
        item = self.get_item(item_id)
        if item is None:
            return None
        return self.session.edits.increment_by(item_id, delta, item.quantity)

    async def commit_quantity(self, item_id: str) -> bool:
        if self.get_item(item_id) is None:
            self.session.edits.drop(item_id)
            return False

        async def apply(value: float) -> bool:
            await self._write_items(
                [
                    i.model_copy(update={"quantity": value}) if i.id == item_id else i
                    for i in self.items
                ]
            )
            return True

        return bool(await self.session.edits.commit(item_id, apply))

    def discard_quantity(self, item_id: str) -> bool:
        return self.session.edits.discard(item_id)

    # -----------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------

    async def add_member(self, name: str, discord_id: str = "", email: str = "") -> Member | None:
        try:
            member = Member.create(name, discord_id, email)
        except ValueError:
            logger.debug("Rejected invalid member")
            return None
        self.members = [*self.members, member]
        await self.config.set_members(self.members)
        return member

    async def delete_member(self, member_id: str) -> bool:
        """Remove a member and clear their assignment on every item."""
        if self.get_member(member_id) is None:
            return False
        self.members = [m for m in self.members if m.id != member_id]
        await self.config.set_members(self.members)
        if any(i.assigned_member_id == member_id for i in self.items):
            await self._write_items(
                [
                    i.model_copy(update={"assigned_member_id": ""})
                    if i.assigned_member_id == member_id
                    else i
                    for i in self.items
                ]
            )
        return True

    # -----------------------------------------------------------------
    # Channel settings
    # -----------------------------------------------------------------

    async def save_webhook(self, url: str) -> Outcome | None:
        url = url.strip()
        if not url:
            return None
        self.chat.url = url
        return await self.config.set_webhook(url)

    async def save_email_config(
        self, service_id: str, template_id: str, public_key: str
    ) -> Outcome | None:
        cfg = EmailChannelConfig(
            service_id=service_id.strip(),
            template_id=template_id.strip(),
            public_key=public_key.strip(),
        )
        if not cfg.complete:
            return None
        self.email_config = cfg
        self.email.init(cfg.public_key)
        return await self.config.set_email_config(cfg)

    async def remove_webhook(self) -> Outcome:
        """Turn off chat delivery (instant alerts and chat digests)."""
        self.chat.url = ""
        return await self.config.set_webhook("")

    async def remove_email_config(self) -> Outcome:
        """Turn off digest emails; stores the empty channel config."""
        self.email_config = EmailChannelConfig()
        self.email.reset()
        return await self.config.set_email_config(self.email_config)

    # -----------------------------------------------------------------
    # Notifications
    # -----------------------------------------------------------------

    async def _evaluate_alerts(self) -> None:
        evaluation = self.tracker.evaluate(self.items)
        if evaluation.fired_set_changed:
            await self.config.set_alerted(self.tracker.fired)
        if not self.chat.configured:
            return
        for item, tier in evaluation.fire:
            message = build_alert_message(
                item,
                tier,
                self.get_member(item.assigned_member_id),
                app_url=self.settings.app_url,
                now=self.clock(),
            )
            self.outcomes.record(await self.chat.post(message))

    async def send_digests(self) -> list[Outcome]:
        outcomes = await send_digests(
            self.items,
            self.members,
            chat=self.chat,
            email=self.email,
            email_config=self.email_config,
            app_url=self.settings.app_url,
            now=self.clock(),
        )
        for outcome in outcomes:
            self.outcomes.record(outcome)
        return outcomes

    async def send_digest_now(self) -> list[Outcome]:
        """Operator trigger: send immediately, watermark untouched."""
        return await self.scheduler.send_now()
