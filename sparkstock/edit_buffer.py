"""Optimistic quantity edits held in session memory.

A user nudges or types a quantity and sees it immediately; nothing is written
remotely until ``commit``. Entries are never persisted.
"""

from __future__ import annotations

import inspect
import logging
import math
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("sparkstock.edit_buffer")


def _parse_quantity(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(n) or n < 0:
        return None
    return n


class EditBuffer:
    """itemId -> proposed quantity."""

    def __init__(self) -> None:
        self._pending: dict[str, float] = {}

    def propose(self, item_id: str, value: Any) -> bool:
        """Buffer a typed quantity. Invalid input is ignored (returns False)."""
        n = _parse_quantity(value)
        if n is None:
            return False
        self._pending[item_id] = n
        return True

    def increment_by(self, item_id: str, delta: float, canonical_quantity: float) -> float:
        base = self._pending.get(item_id, canonical_quantity)
        n = max(0.0, base + delta)
        self._pending[item_id] = n
        return n

    async def commit(self, item_id: str, apply: Callable[[float], Any]) -> Any:
        """Hand the buffered value to ``apply`` and then clear it.

        ``apply`` updates canonical state and issues the remote write (it may
        be a coroutine function); the entry stays visible until it returns,
        and is cleared only if it still holds the committed value. Returns
        False when nothing is buffered, otherwise whatever ``apply`` returned.
        """
        if item_id not in self._pending:
            return False
        value = self._pending[item_id]
        result = apply(value)
        if inspect.isawaitable(result):
            result = await result
        # A newer value proposed while apply was running stays buffered.
        if self._pending.get(item_id) == value:
            del self._pending[item_id]
        return result

    def discard(self, item_id: str) -> bool:
        return self._pending.pop(item_id, None) is not None

    def drop(self, item_id: str) -> None:
        if self._pending.pop(item_id, None) is not None:
            logger.debug("Dropped pending edit for %s", item_id)

    def get(self, item_id: str, fallback: float) -> float:
        return self._pending.get(item_id, fallback)

    def pending(self) -> dict[str, float]:
        return dict(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
