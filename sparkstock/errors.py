"""Exception hierarchy for the Spark Stock engine.

Adapters raise these; the engine converts them into ``Failed`` outcomes so
nothing escapes past its public methods.
"""

from __future__ import annotations


class SparkStockError(Exception):
    """Base class for all engine errors."""


class StoreError(SparkStockError):
    """A document store read or write failed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
