"""Tests for the document store backends.

Covers the in-memory store, the Firestore value codec, the Firestore REST
backend (mocked httpx), and the factory.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sparkstock.config import EngineSettings
from sparkstock.document_store import (
    FirestoreStore,
    InMemoryDocumentStore,
    create_store,
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
)
from sparkstock.errors import StoreError

# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class TestInMemoryDocumentStore:
    @pytest.mark.asyncio
    async def test_missing_document(self):
        store = InMemoryDocumentStore()
        assert await store.get_document("sparkstock/config") is None

    @pytest.mark.asyncio
    async def test_set_replaces(self):
        store = InMemoryDocumentStore({"c/d": {"a": 1, "b": 2}})
        await store.set_document("c/d", {"a": 3})
        assert await store.get_document("c/d") == {"a": 3}

    @pytest.mark.asyncio
    async def test_merge_keeps_other_keys(self):
        store = InMemoryDocumentStore({"c/d": {"a": 1, "b": 2}})
        await store.set_document("c/d", {"a": 3}, merge=True)
        assert await store.get_document("c/d") == {"a": 3, "b": 2}

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self):
        store = InMemoryDocumentStore({"c/d": {"items": []}})
        doc = await store.get_document("c/d")
        doc["items"].append("mutated")
        assert await store.get_document("c/d") == {"items": []}

    @pytest.mark.asyncio
    async def test_subscribe_delivers_current_then_changes(self):
        store = InMemoryDocumentStore()
        on_change = AsyncMock()
        sub = await store.subscribe("c/d", on_change, AsyncMock())

        on_change.assert_awaited_once_with(None)
        await store.set_document("c/d", {"x": 1})
        assert on_change.await_args_list[-1].args == ({"x": 1},)

        sub.unsubscribe()
        assert sub.active is False
        await store.put_remote("c/d", {"x": 2})
        assert on_change.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_flags(self):
        store = InMemoryDocumentStore()
        store.fail_writes = True
        with pytest.raises(StoreError) as exc:
            await store.set_document("c/d", {"x": 1})
        assert exc.value.path == "c/d"

        store.fail_reads = True
        with pytest.raises(StoreError):
            await store.get_document("c/d")

    @pytest.mark.asyncio
    async def test_writes_recorded(self):
        store = InMemoryDocumentStore()
        await store.set_document("c/d", {"x": 1}, merge=True)
        assert store.writes == [("c/d", {"x": 1}, True)]


# ---------------------------------------------------------------------------
# Firestore value codec
# ---------------------------------------------------------------------------


class TestFirestoreCodec:
    def test_scalars(self):
        assert encode_value(None) == {"nullValue": None}
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(12) == {"integerValue": "12"}
        assert encode_value(2.5) == {"doubleValue": 2.5}
        assert encode_value("x") == {"stringValue": "x"}

    def test_bool_is_not_integer(self):
        assert "booleanValue" in encode_value(False)

    def test_inventory_document(self):
        doc = {
            "items": [{"id": "a", "name": "Clay", "quantity": 2.5, "tags": []}],
            "writer": "w1",
            "seq": 3,
        }
        assert decode_fields(encode_fields(doc)) == doc

    def test_decode_firestore_response_shapes(self):
        assert decode_value({"integerValue": "7"}) == 7
        assert decode_value({"arrayValue": {}}) == []
        assert decode_value({"mapValue": {}}) == {}
        assert decode_value({"timestampValue": "2026-10-19T22:00:00Z"}) == "2026-10-19T22:00:00Z"

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            encode_value(object())


# ---------------------------------------------------------------------------
# Firestore backend (mocked)
# ---------------------------------------------------------------------------


def _mock_client(MockClient, response):
    instance = AsyncMock()
    instance.get.return_value = response
    instance.patch.return_value = response
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    MockClient.return_value = instance
    return instance


def _response(status_code, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body or {}
    resp.text = "error body"
    return resp


class TestFirestoreStore:
    @pytest.mark.asyncio
    async def test_get_document(self):
        store = FirestoreStore("proj", "key123")
        body = {
            "fields": {"discord_webhook": {"stringValue": "https://hook"}},
            "updateTime": "2026-10-19T22:00:00Z",
        }
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            instance = _mock_client(MockClient, _response(200, body))
            doc = await store.get_document("sparkstock/config")

        assert doc == {"discord_webhook": "https://hook"}
        url = instance.get.call_args[0][0]
        assert url.endswith("/projects/proj/databases/(default)/documents/sparkstock/config")
        assert ("key", "key123") in instance.get.call_args[1]["params"]

    @pytest.mark.asyncio
    async def test_get_missing(self):
        store = FirestoreStore("proj")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            _mock_client(MockClient, _response(404))
            assert await store.get_document("sparkstock/inventory") is None

    @pytest.mark.asyncio
    async def test_get_error_status(self):
        store = FirestoreStore("proj")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            _mock_client(MockClient, _response(403))
            with pytest.raises(StoreError) as exc:
                await store.get_document("sparkstock/inventory")
        assert "403" in exc.value.reason

    @pytest.mark.asyncio
    async def test_transport_error(self):
        store = FirestoreStore("proj")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            instance = _mock_client(MockClient, _response(200))
            instance.get.side_effect = httpx.ConnectError("unreachable")
            with pytest.raises(StoreError):
                await store.get_document("sparkstock/inventory")

    @pytest.mark.asyncio
    async def test_merge_sets_update_mask(self):
        store = FirestoreStore("proj")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            instance = _mock_client(MockClient, _response(200))
            await store.set_document(
                "sparkstock/config", {"alerted_ids": "[]"}, merge=True
            )

        kwargs = instance.patch.call_args[1]
        assert ("updateMask.fieldPaths", "alerted_ids") in kwargs["params"]
        assert kwargs["json"] == {"fields": {"alerted_ids": {"stringValue": "[]"}}}

    @pytest.mark.asyncio
    async def test_overwrite_has_no_mask(self):
        store = FirestoreStore("proj")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            instance = _mock_client(MockClient, _response(200))
            await store.set_document("sparkstock/inventory", {"items": []})

        assert instance.patch.call_args[1]["params"] == []

    @pytest.mark.asyncio
    async def test_write_error_status(self):
        store = FirestoreStore("proj")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            _mock_client(MockClient, _response(500))
            with pytest.raises(StoreError):
                await store.set_document("sparkstock/inventory", {"items": []})


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateStore:
    def test_default_is_memory(self):
        assert isinstance(create_store(EngineSettings()), InMemoryDocumentStore)

    def test_firestore_without_project_falls_back(self):
        settings = EngineSettings(store_backend="firestore")
        assert isinstance(create_store(settings), InMemoryDocumentStore)

    def test_firestore(self):
        settings = EngineSettings(store_backend="firestore", firestore_project_id="proj")
        assert isinstance(create_store(settings), FirestoreStore)


# ---------------------------------------------------------------------------
# Firestore polling subscription (mocked)
# ---------------------------------------------------------------------------


class TestFirestoreSubscription:
    @pytest.mark.asyncio
    async def test_invalid_body_is_store_error(self):
        store = FirestoreStore("proj")
        resp = _response(200)
        resp.json.side_effect = ValueError("not json")
        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            _mock_client(MockClient, resp)
            with pytest.raises(StoreError) as exc:
                await store.get_document("sparkstock/inventory")
        assert "invalid response body" in exc.value.reason

    @pytest.mark.asyncio
    async def test_invalid_body_reported_and_polling_continues(self):
        store = FirestoreStore("proj", poll_interval=0.01)
        resp = _response(200)
        resp.json.side_effect = ValueError("not json")
        on_change, on_error = AsyncMock(), AsyncMock()

        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            instance = _mock_client(MockClient, resp)
            sub = await store.subscribe("sparkstock/inventory", on_change, on_error)
            await asyncio.sleep(0.1)
            sub.unsubscribe()
            await asyncio.sleep(0)

        on_change.assert_not_called()
        assert on_error.await_count >= 2
        assert isinstance(on_error.await_args_list[0].args[0], StoreError)
        assert instance.get.await_count >= 2

    @pytest.mark.asyncio
    async def test_failing_handler_reported_and_redelivered(self):
        store = FirestoreStore("proj", poll_interval=0.01)
        body = {"fields": {"seq": {"integerValue": "1"}}, "updateTime": "t1"}
        on_change = AsyncMock(side_effect=[RuntimeError("boom"), None])
        on_error = AsyncMock()

        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            _mock_client(MockClient, _response(200, body))
            sub = await store.subscribe("sparkstock/inventory", on_change, on_error)
            await asyncio.sleep(0.1)
            sub.unsubscribe()
            await asyncio.sleep(0)

        assert on_change.await_count == 2
        assert on_change.await_args.args == ({"seq": 1},)
        on_error.assert_awaited_once()
        assert isinstance(on_error.await_args.args[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_failing_error_handler_does_not_stop_polling(self):
        store = FirestoreStore("proj", poll_interval=0.01)
        on_error = AsyncMock(side_effect=RuntimeError("handler broke"))

        with patch("sparkstock.document_store.httpx.AsyncClient") as MockClient:
            _mock_client(MockClient, _response(500))
            sub = await store.subscribe("sparkstock/inventory", AsyncMock(), on_error)
            await asyncio.sleep(0.1)
            sub.unsubscribe()
            await asyncio.sleep(0)

        assert on_error.await_count >= 2
