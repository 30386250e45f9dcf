"""Document store persistence layer.

Supports two backends:
    - InMemoryDocumentStore  ephemeral, for dev/testing
    - FirestoreStore         persistent, Firestore REST API over httpx

Usage:
    store = create_store(settings)
    # FirestoreStore when a project id is configured, otherwise in-memory.

Two documents are used, addressed as ``collection/document`` paths:

    sparkstock/inventory   {"items": [...], "writer": "...", "seq": 12}
    sparkstock/config      flat key/value map, written with merge=True

Subscriptions deliver the current document (or None when absent) once on
subscribe and then after every change.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .errors import StoreError

logger = logging.getLogger("sparkstock.document_store")

OnChange = Callable[[dict[str, Any] | None], Awaitable[None]]
OnError = Callable[[Exception], Awaitable[None]]


class Subscription:
    """Handle returned by ``subscribe``; call ``unsubscribe`` to stop."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------


class DocumentStore(ABC):
    """Abstract document store interface."""

    @abstractmethod
    async def get_document(self, path: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def set_document(
        self, path: str, data: dict[str, Any], *, merge: bool = False
    ) -> None: ...

    @abstractmethod
    async def subscribe(
        self, path: str, on_change: OnChange, on_error: OnError
    ) -> Subscription: ...


# ---------------------------------------------------------------------------
# In-memory implementation (dev/testing)
# ---------------------------------------------------------------------------


class InMemoryDocumentStore(DocumentStore):
    """Ephemeral store. Listeners are awaited inline after each write."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._docs: dict[str, dict[str, Any]] = copy.deepcopy(initial or {})
        self._listeners: dict[str, list[OnChange]] = {}
        self.fail_writes = False
        self.fail_reads = False
        self.writes: list[tuple[str, dict[str, Any], bool]] = []

    async def get_document(self, path: str) -> dict[str, Any] | None:
        if self.fail_reads:
            raise StoreError(path, "read failed")
        doc = self._docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    async def set_document(
        self, path: str, data: dict[str, Any], *, merge: bool = False
    ) -> None:
        if self.fail_writes:
            raise StoreError(path, "write failed")
        self.writes.append((path, copy.deepcopy(data), merge))
        if merge and path in self._docs:
            self._docs[path].update(copy.deepcopy(data))
        else:
            self._docs[path] = copy.deepcopy(data)
        await self._notify(path)

    async def put_remote(self, path: str, data: dict[str, Any]) -> None:
        """Simulate a write from another client (bypasses failure flags)."""
        self._docs[path] = copy.deepcopy(data)
        await self._notify(path)

    async def subscribe(
        self, path: str, on_change: OnChange, on_error: OnError
    ) -> Subscription:
        listeners = self._listeners.setdefault(path, [])
        listeners.append(on_change)

        def cancel() -> None:
            if on_change in listeners:
                listeners.remove(on_change)

        await on_change(copy.deepcopy(self._docs.get(path)))
        return Subscription(cancel)

    async def _notify(self, path: str) -> None:
        for listener in list(self._listeners.get(path, [])):
            await listener(copy.deepcopy(self._docs.get(path)))


# ---------------------------------------------------------------------------
# Firestore value codec
# ---------------------------------------------------------------------------


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a JSON-compatible Python value as a Firestore REST ``Value``."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {str(k): encode_value(v) for k, v in data.items()}


def decode_value(value: dict[str, Any]) -> Any:
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    logger.warning("Unsupported Firestore value type: %s", list(value))
    return None


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


# ---------------------------------------------------------------------------
# Firestore implementation (production)
# ---------------------------------------------------------------------------


class FirestoreStore(DocumentStore):
    """Firestore REST backend.

    There is no streaming listener over plain REST, so ``subscribe`` polls
    the document and reports a change whenever ``updateTime`` moves. Fetch
    and handler failures go to ``on_error`` and polling continues; a change
    whose handler failed is delivered again on the next poll.
    """

    BASE_URL = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        project_id: str,
        api_key: str = "",
        *,
        database: str = "(default)",
        poll_interval: float = 5.0,
        timeout: float = 10.0,
    ) -> None:
        self._root = (
            f"{self.BASE_URL}/projects/{project_id}/databases/{database}/documents"
        )
        self._api_key = api_key
        self.poll_interval = poll_interval
        self.timeout = timeout
        logger.info("FirestoreStore: initialized for project %s", project_id)

    def _params(self, extra: list[tuple[str, str]] | None = None) -> list[tuple[str, str]]:
        params = list(extra or [])
        if self._api_key:
            params.append(("key", self._api_key))
        return params

    async def _fetch(self, path: str) -> tuple[dict[str, Any] | None, str | None]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(f"{self._root}/{path}", params=self._params())
        except httpx.HTTPError as e:
            raise StoreError(path, f"request failed: {e}") from e
        if resp.status_code == 404:
            return None, None
        if resp.status_code != 200:
            raise StoreError(path, f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise StoreError(path, f"invalid response body: {e}") from e
        return decode_fields(body.get("fields", {})), body.get("updateTime")

    async def get_document(self, path: str) -> dict[str, Any] | None:
        data, _ = await self._fetch(path)
        return data

    async def set_document(
        self, path: str, data: dict[str, Any], *, merge: bool = False
    ) -> None:
        extra: list[tuple[str, str]] = []
        if merge:
            extra = [("updateMask.fieldPaths", k) for k in data]
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.patch(
                    f"{self._root}/{path}",
                    params=self._params(extra),
                    json={"fields": encode_fields(data)},
                )
        except httpx.HTTPError as e:
            raise StoreError(path, f"request failed: {e}") from e
        if resp.status_code not in (200, 201):
            raise StoreError(path, f"HTTP {resp.status_code}: {resp.text[:200]}")
        logger.debug("FirestoreStore: wrote %s (merge=%s)", path, merge)

    async def subscribe(
        self, path: str, on_change: OnChange, on_error: OnError
    ) -> Subscription:
        task = asyncio.create_task(self._poll(path, on_change, on_error))
        return Subscription(task.cancel)

    async def _poll(self, path: str, on_change: OnChange, on_error: OnError) -> None:
        last_seen: object = object()
        while True:
            try:
                data, update_time = await self._fetch(path)
                if update_time != last_seen:
                    await on_change(data)
                    last_seen = update_time
            except asyncio.CancelledError:
                raise
            except StoreError as e:
                await self._report(on_error, e)
            except Exception as e:
                logger.exception("FirestoreStore: subscription handler failed for %s", path)
                await self._report(on_error, e)
            await asyncio.sleep(self.poll_interval)

    @staticmethod
    async def _report(on_error: OnError, exc: Exception) -> None:
        try:
            await on_error(exc)
        except Exception:
            logger.exception("FirestoreStore: error handler failed")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_store(settings) -> DocumentStore:
    """Create a document store from ``EngineSettings``.

    Returns FirestoreStore when the firestore backend is selected and a
    project id is set, InMemoryDocumentStore otherwise.
    """
    if settings.store_backend == "firestore":
        if settings.firestore_project_id:
            logger.info("Using Firestore-backed document store")
            return FirestoreStore(
                settings.firestore_project_id,
                settings.firestore_api_key,
                database=settings.firestore_database,
                poll_interval=settings.firestore_poll_interval,
                timeout=settings.http_timeout,
            )
        logger.warning("Firestore backend selected without a project id")

    logger.info("Using in-memory document store (non-persistent)")
    return InMemoryDocumentStore()
