"""Instant low/out-of-stock alerts with de-duplication.

The fired set holds keys ``"{item_id}:{tier}"``. Entering LOW or OUT fires
once per key; leaving both (to OK or GOOD) clears both keys so the next dip
alerts again. Evaluation is idempotent: re-running it on an unchanged list
fires nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import Item
from .status import ALERTING_TIERS, StockTier, classify_item

logger = logging.getLogger("sparkstock.alerts")


def alert_key(item_id: str, tier: StockTier) -> str:
    return f"{item_id}:{tier.value}"


@dataclass
class AlertEvaluation:
    fire: list[tuple[Item, StockTier]] = field(default_factory=list)
    cleared: list[str] = field(default_factory=list)
    fired_set_changed: bool = False


class AlertTracker:
    """Tracks observed tiers and the persisted fired set."""

    def __init__(self, fired: Iterable[str] = ()):
        self.fired: set[str] = set(fired)
        self._previous: dict[str, StockTier] = {}
        self.ready = False

    def load_fired(self, keys: Iterable[str]) -> None:
        self.fired = set(keys)

    def mark_ready(self) -> None:
        if not self.ready:
            logger.info("Alert tracking enabled (%d keys loaded)", len(self.fired))
        self.ready = True

    def previous_tier(self, item_id: str) -> StockTier | None:
        return self._previous.get(item_id)

    def evaluate(self, items: Iterable[Item]) -> AlertEvaluation:
        result = AlertEvaluation()
        if not self.ready:
            return result

        seen: set[str] = set()
        for item in items:
            seen.add(item.id)
            tier = classify_item(item)
            was_alerting = (
                self._previous.get(item.id) is not None
                and self._previous[item.id].is_alerting
            )

            if tier.is_alerting:
                key = alert_key(item.id, tier)
                if key not in self.fired:
                    self.fired.add(key)
                    result.fire.append((item, tier))
                    result.fired_set_changed = True
            else:
                keys = [alert_key(item.id, t) for t in ALERTING_TIERS]
                present = [k for k in keys if k in self.fired]
                if was_alerting or present:
                    for k in present:
                        self.fired.discard(k)
                    result.cleared.extend(present)
                    result.fired_set_changed = result.fired_set_changed or bool(present)

            self._previous[item.id] = tier

        for gone in set(self._previous) - seen:
            del self._previous[gone]

        if result.fire:
            logger.info(
                "Alerting on %d item(s): %s",
                len(result.fire),
                ", ".join(f"{i.name} ({t.label})" for i, t in result.fire),
            )
        return result
