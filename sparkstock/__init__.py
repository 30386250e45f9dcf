"""Spark Stock: makerspace inventory stock-state and notification engine.

Derives stock tiers from quantity and reorder threshold, fires de-duplicated
low/out-of-stock alerts to a chat webhook, sends a weekly per-purchaser
restock digest (chat + email), and reconciles optimistic local quantity
edits against a realtime document store.

Usage:
    from sparkstock import InventoryEngine, create_store, get_settings

    settings = get_settings()
    async with InventoryEngine(create_store(settings), settings) as engine:
        item = await engine.add_item(name="Wood Glue", quantity=1,
                                     low_stock_threshold=2, unit="bottles")
        engine.adjust_quantity(item.id, +3)
        await engine.commit_quantity(item.id)
"""

from .access_gate import AccessGate
from .alerts import AlertTracker, alert_key
from .chat_notifier import ChatNotifier, send_webhook
from .config import EngineSettings, get_settings
from .config_store import ConfigStore
from .digest import (
    DigestGroup,
    build_alert_message,
    build_digest_email_params,
    build_digest_message,
    group_alerting_items,
    iso_week_label,
    send_digests,
)
from .digest_scheduler import DigestScheduler
from .document_store import (
    DocumentStore,
    FirestoreStore,
    InMemoryDocumentStore,
    Subscription,
    create_store,
)
from .edit_buffer import EditBuffer
from .email_service import EmailSender
from .engine import InventoryEngine
from .errors import SparkStockError, StoreError
from .models import Category, EmailChannelConfig, Item, Member, Unit
from .outcomes import Failed, Ok, Outcome, OutcomeLog
from .reconciliation import Reconciler, ReconcileResult, WriteStamp
from .session import Prompt, SessionContext
from .status import StockTier, classify

__all__ = [
    "AccessGate",
    "AlertTracker",
    "Category",
    "ChatNotifier",
    "ConfigStore",
    "DigestGroup",
    "DigestScheduler",
    "DocumentStore",
    "EditBuffer",
    "EmailChannelConfig",
    "EmailSender",
    "EngineSettings",
    "Failed",
    "FirestoreStore",
    "InMemoryDocumentStore",
    "InventoryEngine",
    "Item",
    "Member",
    "Ok",
    "Outcome",
    "OutcomeLog",
    "Prompt",
    "ReconcileResult",
    "Reconciler",
    "SessionContext",
    "SparkStockError",
    "StockTier",
    "StoreError",
    "Subscription",
    "Unit",
    "WriteStamp",
    "alert_key",
    "build_alert_message",
    "build_digest_email_params",
    "build_digest_message",
    "classify",
    "create_store",
    "get_settings",
    "group_alerting_items",
    "iso_week_label",
    "send_digests",
    "send_webhook",
]
