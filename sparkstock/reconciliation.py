"""Merge remote inventory snapshots into the local canonical list.

Every local write is stamped with this session's writer id and a
monotonically increasing sequence number. A snapshot carrying our writer id
and a sequence number we issued is the echo of our own write: it is
acknowledged and absorbed without touching canonical state, so alert logic
does not run twice for one change.

Any other snapshot is authoritative for content. Pending quantity edits are
invalidated when the remote quantity moved underneath them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .edit_buffer import EditBuffer
from .models import InventoryDocument, Item, new_id

logger = logging.getLogger("sparkstock.reconciliation")


@dataclass(frozen=True)
class WriteStamp:
    writer: str
    seq: int

    def as_fields(self) -> dict[str, Any]:
        return {"writer": self.writer, "seq": self.seq}


@dataclass
class ReconcileResult:
    """What applying one snapshot did."""

    echo: bool = False
    items: list[Item] | None = None  # new canonical list, None = unchanged
    dropped_edits: list[str] = field(default_factory=list)
    rejected: int = 0

    @property
    def changed(self) -> bool:
        return self.items is not None


def parse_items(raw_items: list[dict[str, Any]]) -> tuple[list[Item], int]:
    """Validate raw item dicts, skipping (and counting) the invalid ones."""
    items: list[Item] = []
    rejected = 0
    for raw in raw_items:
        try:
            items.append(Item.model_validate(raw))
        except ValidationError as e:
            rejected += 1
            logger.warning("Skipping invalid item in snapshot: %s", e.errors()[:1])
    return items, rejected


class Reconciler:
    """Write sequencing and snapshot merging for one session."""

    def __init__(self, writer_id: str | None = None):
        self.writer_id = writer_id or new_id()
        self._issued = 0
        self._acked = 0

    @property
    def issued_seq(self) -> int:
        return self._issued

    @property
    def acked_seq(self) -> int:
        return self._acked

    @property
    def in_flight(self) -> int:
        """Writes issued but not yet seen echoed back."""
        return self._issued - self._acked

    def arm(self) -> WriteStamp:
        """Reserve the next sequence number.

        Must be called synchronously before the write is handed to the store.
        """
        self._issued += 1
        return WriteStamp(self.writer_id, self._issued)

    def is_echo(self, doc: InventoryDocument) -> bool:
        """True for our own stamp with a sequence number not yet acknowledged.

        Each write is absorbed once; a redelivered, already acknowledged
        stamp is applied like any other snapshot.
        """
        return (
            doc.writer == self.writer_id
            and doc.seq is not None
            and self._acked < doc.seq <= self._issued
        )

    def reconcile(
        self,
        data: dict[str, Any] | None,
        current: list[Item],
        buffer: EditBuffer,
    ) -> ReconcileResult:
        if data is None:
            logger.info("Inventory document absent; keeping local items")
            return ReconcileResult()

        try:
            doc = InventoryDocument.model_validate(data)
        except ValidationError:
            logger.exception("Malformed inventory document ignored")
            return ReconcileResult()

        if self.is_echo(doc):
            self._acked = max(self._acked, doc.seq)
            logger.debug("Absorbed echo of write %d", doc.seq)
            return ReconcileResult(echo=True)

        items, rejected = parse_items(doc.items)

        previous = {i.id: i.quantity for i in current}
        incoming = {i.id: i.quantity for i in items}
        dropped: list[str] = []
        for item_id in buffer.pending():
            if item_id not in incoming:
                dropped.append(item_id)
            elif item_id in previous and incoming[item_id] != previous[item_id]:
                dropped.append(item_id)
        for item_id in dropped:
            buffer.drop(item_id)
        if dropped:
            logger.info("Remote change invalidated pending edits: %s", dropped)

        return ReconcileResult(items=items, dropped_edits=dropped, rejected=rejected)
