"""Stock tier classification.

    quantity == 0         -> OUT
    0 < q / t <= 1        -> LOW
    1 < q / t <= 2        -> OK
    q / t > 2             -> GOOD

A threshold of zero or less has no meaningful ratio: an empty item is still
OUT, anything else is GOOD.

Display code must classify the effective quantity (pending edit if any);
alerting must classify the canonical, committed quantity.
"""

from __future__ import annotations

from enum import Enum


class StockTier(str, Enum):
    OUT = "out"
    LOW = "low"
    OK = "ok"
    GOOD = "good"

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def is_alerting(self) -> bool:
        return self in (StockTier.OUT, StockTier.LOW)

    @property
    def severity(self) -> int:
        """0 = most severe (OUT), 3 = least (GOOD)."""
        return {
            StockTier.OUT: 0,
            StockTier.LOW: 1,
            StockTier.OK: 2,
            StockTier.GOOD: 3,
        }[self]


ALERTING_TIERS = (StockTier.LOW, StockTier.OUT)


def classify(quantity: float, threshold: float) -> StockTier:
    if quantity <= 0:
        return StockTier.OUT
    if threshold <= 0:
        return StockTier.GOOD
    ratio = quantity / threshold
    if ratio <= 1:
        return StockTier.LOW
    if ratio <= 2:
        return StockTier.OK
    return StockTier.GOOD


def classify_item(item) -> StockTier:
    """Classify an ``Item`` by its canonical quantity."""
    return classify(item.quantity, item.low_stock_threshold)
