"""Explicit results for fire-and-forget operations.

Remote writes and notification sends never raise past the engine. Each one
returns ``Ok`` or ``Failed`` instead, and the engine records it in an
``OutcomeLog`` so failures stay observable (and assertable in tests).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger("sparkstock.outcomes")


@dataclass(frozen=True)
class Ok:
    channel: str
    detail: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    channel: str
    reason: str

    @property
    def ok(self) -> bool:
        return False


Outcome = Ok | Failed


@dataclass
class OutcomeRecord:
    outcome: Outcome
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class OutcomeLog:
    """Append-only sink for outcomes.

    Keeps the most recent ``max_records`` entries in memory.
    """

    def __init__(self, max_records: int = 500):
        self.max_records = max_records
        self._records: list[OutcomeRecord] = []

    def record(self, outcome: Outcome) -> Outcome:
        if isinstance(outcome, Failed):
            logger.warning("%s failed: %s", outcome.channel, outcome.reason)
        else:
            logger.debug("%s ok %s", outcome.channel, outcome.detail)
        self._records.append(OutcomeRecord(outcome))
        if len(self._records) > self.max_records:
            del self._records[: len(self._records) - self.max_records]
        return outcome

    @property
    def outcomes(self) -> list[Outcome]:
        return [r.outcome for r in self._records]

    def failures(self, channel: str | None = None) -> list[Failed]:
        return [
            o
            for o in self.outcomes
            if isinstance(o, Failed) and (channel is None or o.channel == channel)
        ]

    def for_channel(self, channel: str) -> list[Outcome]:
        return [o for o in self.outcomes if o.channel == channel]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
