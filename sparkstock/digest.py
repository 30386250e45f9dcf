"""Notification composition: instant alerts and the weekly restock digest.

Everything here is deterministic given the same items, roster, app URL and
timestamp; the only I/O is in ``send_digests``.

Digest grouping:
    - only LOW / OUT items (by canonical quantity) are included
    - items are grouped by ``assigned_member_id``; unassigned items form
      their own group
    - groups are ordered by first appearance in the item list, items keep
      list order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .chat_notifier import ChatNotifier
from .email_service import EmailSender
from .models import EmailChannelConfig, Item, Member
from .outcomes import Outcome
from .status import StockTier, classify_item

logger = logging.getLogger("sparkstock.digest")

UNASSIGNED = "__unassigned__"

COLOR_OUT = 16711680  # red
COLOR_LOW = 16744192  # orange

ALERT_FOOTER = "Spark Stock • Instant Alert"
DIGEST_FOOTER = "Spark Stock • Monday Digest"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_quantity(value: float) -> str:
    """2.0 -> "2", 2.5 -> "2.5"."""
    return f"{value:g}"


def iso_timestamp(now: datetime) -> str:
    """JS-style ISO timestamp, e.g. 2026-10-19T22:00:00.000Z."""
    return (
        now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    )


def iso_week_label(moment: datetime) -> str:
    """ISO year-week label used as the digest watermark, e.g. "2026-W43"."""
    year, week, _ = moment.isocalendar()
    return f"{year}-W{week:02d}"


def _app_link(app_url: str) -> str:
    return f"[Open App]({app_url})"


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


# ---------------------------------------------------------------------------
# Instant alert
# ---------------------------------------------------------------------------


def build_alert_message(
    item: Item,
    tier: StockTier,
    member: Member | None,
    *,
    app_url: str,
    now: datetime,
) -> dict[str, Any]:
    """Chat embed for a single item entering LOW or OUT."""
    unit = item.unit.value
    fields: list[dict[str, Any]] = [
        {"name": "Item", "value": item.name, "inline": True},
        {"name": "Status", "value": tier.label, "inline": True},
        {
            "name": "Current Quantity",
            "value": f"{format_quantity(item.quantity)} {unit}",
            "inline": True,
        },
        {
            "name": "Reorder Threshold",
            "value": f"{format_quantity(item.low_stock_threshold)} {unit}",
            "inline": True,
        },
    ]
    if item.supplier:
        fields.append({"name": "Supplier", "value": item.supplier, "inline": True})
    if member:
        fields.append({"name": "Purchaser", "value": member.name, "inline": True})
    if app_url:
        fields.append(
            {"name": "Inventory App", "value": _app_link(app_url), "inline": False}
        )

    out = tier == StockTier.OUT
    return {
        "embeds": [
            {
                "title": "\U0001f6a8 Item OUT OF STOCK" if out else "\u26a0\ufe0f Low Stock Alert",
                "color": COLOR_OUT if out else COLOR_LOW,
                "fields": fields,
                "footer": {"text": ALERT_FOOTER},
                "timestamp": iso_timestamp(now),
            }
        ]
    }


# ---------------------------------------------------------------------------
# Weekly digest
# ---------------------------------------------------------------------------


@dataclass
class DigestGroup:
    key: str
    member: Member | None
    items: list[Item] = field(default_factory=list)

    @property
    def recipient_name(self) -> str:
        return self.member.name if self.member else "Unassigned items"

    @property
    def has_out(self) -> bool:
        return any(classify_item(i) == StockTier.OUT for i in self.items)


def group_alerting_items(items: list[Item], members: list[Member]) -> list[DigestGroup]:
    roster = {m.id: m for m in members}
    groups: dict[str, DigestGroup] = {}
    for item in items:
        if not classify_item(item).is_alerting:
            continue
        key = item.assigned_member_id or UNASSIGNED
        if key not in groups:
            member = None if key == UNASSIGNED else roster.get(key)
            groups[key] = DigestGroup(key=key, member=member)
        groups[key].items.append(item)
    return list(groups.values())


def _qty_summary(item: Item) -> str:
    return (
        f"({format_quantity(item.quantity)}/"
        f"{format_quantity(item.low_stock_threshold)} {item.unit.value})"
    )


def format_item_line(item: Item) -> str:
    """Chat digest line: ``[LOW] Wood Glue - LOW (1/2 bottles) - Titebond``."""
    tier = classify_item(item)
    supplier = f" - {item.supplier}" if item.supplier else ""
    return f"[{tier.label}] {item.name} - {tier.label} {_qty_summary(item)}{supplier}"


def format_email_line(item: Item) -> str:
    """Email digest line: ``- Wood Glue - LOW (1/2 bottles) - Supplier: Titebond``."""
    tier = classify_item(item)
    supplier = f" - Supplier: {item.supplier}" if item.supplier else ""
    return f"- {item.name} - {tier.label} {_qty_summary(item)}{supplier}"


def build_digest_message(group: DigestGroup, *, app_url: str, now: datetime) -> dict[str, Any]:
    fields: list[dict[str, Any]] = [
        {
            "name": "Items needing attention",
            "value": str(len(group.items)),
            "inline": True,
        }
    ]
    if app_url:
        fields.append({"name": "Inventory App", "value": _app_link(app_url), "inline": True})

    message: dict[str, Any] = {}
    if group.member and group.member.mention:
        message["content"] = group.member.mention
    message["embeds"] = [
        {
            "title": f"\U0001f4cb Weekly Restock Digest — {group.recipient_name}",
            "color": COLOR_LOW,
            "description": "\n".join(format_item_line(i) for i in group.items),
            "fields": fields,
            "footer": {"text": DIGEST_FOOTER},
            "timestamp": iso_timestamp(now),
        }
    ]
    return message


def build_digest_email_params(group: DigestGroup, *, app_url: str) -> dict[str, str]:
    """EmailJS template parameters for one member's digest."""
    if group.member is None:
        raise ValueError("email digest requires a member")
    n = len(group.items)
    # Wording is fixed by the shared EmailJS template.
    return {
        "to_name": group.member.name,
        "to_email": group.member.email,
        "subject": f"\U0001f4cb Weekly Restock Digest — {_plural(n, 'item')} need attention",
        "item_name": f"{n} items need restocking",
        "status": "OUT OF STOCK + LOW" if group.has_out else "LOW STOCK",
        "current_qty": "\n".join(format_email_line(i) for i in group.items),
        "reorder_threshold": "",
        "supplier": "",
        "app_url": app_url,
    }


async def send_digests(
    items: list[Item],
    members: list[Member],
    *,
    chat: ChatNotifier,
    email: EmailSender,
    email_config: EmailChannelConfig,
    app_url: str = "",
    now: datetime | None = None,
) -> list[Outcome]:
    """Send one chat message and at most one email per recipient group.

    Channel failures are returned, not raised; one failed send does not stop
    the remaining groups.
    """
    now = now or datetime.now(UTC)
    groups = group_alerting_items(items, members)
    if not groups:
        logger.info("Digest skipped: no low or out-of-stock items")
        return []

    outcomes: list[Outcome] = []
    for group in groups:
        if chat.configured:
            outcomes.append(
                await chat.post(build_digest_message(group, app_url=app_url, now=now))
            )
        if group.member and group.member.email and email_config.complete:
            outcomes.append(
                await email.send(
                    email_config.service_id,
                    email_config.template_id,
                    build_digest_email_params(group, app_url=app_url),
                )
            )

    logger.info(
        "Digest sent to %d group(s), %d delivery attempt(s)", len(groups), len(outcomes)
    )
    return outcomes
