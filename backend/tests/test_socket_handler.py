import asyncio
import json

import pytest

from backend.possync.broadcast import Broadcaster
from backend.possync.cache import CacheKind, SharedCache
from backend.possync.connections import ConnectionRegistry
from backend.possync.handlers import SocketMessageHandler
from backend.possync.sync import SyncService


class _FakeSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, text):
        self.sent.append(json.loads(text))


@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    yield loop
    pending = asyncio.all_tasks(loop)
    for task in pending:
        task.cancel()
    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    loop.close()


def _setup(loop, require_auth=False, peers=1):
    cache = SharedCache()
    registry = ConnectionRegistry()
    handler = SocketMessageHandler(SyncService(cache, Broadcaster(registry)), registry, require_auth=require_auth)
    conns = [registry.register(_FakeSocket()) for _ in range(peers)]
    for conn in conns:
        loop.create_task(conn.pump())
    return cache, registry, handler, conns


async def _settle():
    for _ in range(3):
        await asyncio.sleep(0)


def _drain(loop, conn):
    loop.run_until_complete(_settle())
    out = list(conn.websocket.sent)
    conn.websocket.sent.clear()
    return out


def _send(handler, conn, **message):
    handler.handle(conn, json.dumps(message))


def test_auth_creates_session_and_acknowledges(loop):
    _, registry, handler, (conn,) = _setup(loop)

    _send(handler, conn, type="auth", userType="Admin", userName=" Abebe ")

    assert handler.is_authenticated(conn) is True
    assert registry.session_for(conn.id).user_name == "Abebe"
    assert _drain(loop, conn) == [
        {"type": "auth_success", "message": "authenticated", "userType": "admin", "userName": "Abebe"}
    ]


def test_auth_without_name_or_with_unknown_role_is_rejected(loop):
    _, _, handler, (conn,) = _setup(loop)

    _send(handler, conn, type="auth", userType="user")
    _send(handler, conn, type="auth", userType="owner", userName="x")

    assert handler.is_authenticated(conn) is False
    assert [m["type"] for m in _drain(loop, conn)] == ["error", "error"]


def test_stock_update_replaces_collection_and_reaches_every_peer(loop):
    cache, _, handler, (a, b) = _setup(loop, peers=2)
    cache.append(CacheKind.STOCK, {"id": "old"})
    stock = [{"id": "a", "quantity": 4}, {"id": "b", "quantity": 2}]

    _send(handler, a, type="stock_update", data=stock)

    assert cache.get(CacheKind.STOCK) == stock
    for conn in (a, b):
        assert _drain(loop, conn) == [{"type": "stock_update", "data": stock}]


def test_sale_update_appends_adjusts_stock_and_audits(loop):
    cache, _, handler, (seller, peer) = _setup(loop, peers=2)
    cache.replace_all(CacheKind.STOCK, [{"id": "a", "quantity": 10}, {"id": "b", "quantity": 3}])
    _send(handler, seller, type="auth", userType="user", userName="Till 1")
    _drain(loop, seller)

    sale = {"total": 25, "items": [{"itemId": "a", "quantity": 4}, {"id": "b", "quantity": 1}]}
    _send(handler, seller, type="sale_update", data=sale)

    sales = cache.get(CacheKind.SALES)
    assert len(sales) == 1 and sales[0]["total"] == 25 and "timestamp" in sales[0]
    assert cache.get(CacheKind.STOCK) == [{"id": "a", "quantity": 6}, {"id": "b", "quantity": 2}]
    audit = cache.get(CacheKind.AUDIT)
    assert audit[0]["action"] == "sale_created"
    assert audit[0]["userName"] == "Till 1"
    assert audit[0]["details"]["total"] == 25

    received = _drain(loop, peer)
    assert [m["type"] for m in received] == ["sale_update", "stock_update", "audit_update"]
    assert received[0]["data"] == sales
    assert received[2]["data"] == audit
    assert _drain(loop, seller) == received


def test_sale_with_unknown_item_leaves_stock_untouched(loop):
    cache, _, handler, (conn,) = _setup(loop)
    cache.replace_all(CacheKind.STOCK, [{"id": "a", "quantity": 10}])

    _send(handler, conn, type="sale_update", data={"items": [{"itemId": "zzz", "quantity": 4}]})

    assert cache.get(CacheKind.STOCK) == [{"id": "a", "quantity": 10}]
    assert [m["type"] for m in _drain(loop, conn)] == ["sale_update", "audit_update"]


def test_transaction_update_appends_and_audits(loop):
    cache, _, handler, (conn,) = _setup(loop)

    _send(handler, conn, type="transaction_update", data={"amount": 40, "kind": "expense"})

    assert cache.get(CacheKind.TRANSACTIONS)[0]["amount"] == 40
    assert cache.get(CacheKind.AUDIT)[0]["action"] == "transaction_created"
    assert cache.get(CacheKind.AUDIT)[0]["userName"] is None
    assert [m["type"] for m in _drain(loop, conn)] == ["transaction_update", "audit_update"]


def test_audit_update_appends_entry(loop):
    cache, _, handler, (conn,) = _setup(loop)

    _send(handler, conn, type="audit_update", data={"action": "price_change"})

    assert cache.get(CacheKind.AUDIT)[0]["action"] == "price_change"
    assert _drain(loop, conn)[0]["type"] == "audit_update"


def test_sync_request_replies_only_to_requester(loop):
    cache, _, handler, (asker, other) = _setup(loop, peers=2)
    cache.append(CacheKind.STOCK, {"id": "a"})

    _send(handler, asker, type="sync_request")

    assert _drain(loop, asker) == [{"type": "sync_response", "data": cache.snapshot()}]
    assert _drain(loop, other) == []


def test_sync_response_merges_without_broadcast(loop):
    cache, _, handler, (a, b) = _setup(loop, peers=2)

    _send(handler, a, type="sync_response", data={"stockItems": [{"id": "x"}], "audit": []})

    assert cache.get(CacheKind.STOCK) == [{"id": "x"}]
    assert _drain(loop, a) == [] and _drain(loop, b) == []


def test_unknown_type_is_ignored(loop):
    cache, _, handler, (conn,) = _setup(loop)

    _send(handler, conn, type="price_check", data={"id": "a"})

    assert _drain(loop, conn) == []
    assert cache.sizes() == {"stockItems": 0, "sales": 0, "transactions": 0, "audit": 0}


def test_malformed_frame_reports_error_and_connection_stays_usable(loop):
    _, _, handler, (conn, peer) = _setup(loop, peers=2)

    handler.handle(conn, "{not json")
    handler.handle(conn, "[1, 2, 3]")
    assert [m["type"] for m in _drain(loop, conn)] == ["error", "error"]
    assert _drain(loop, peer) == []

    _send(handler, conn, type="sync_request")
    assert _drain(loop, conn)[0]["type"] == "sync_response"


def test_wrong_payload_shape_is_reported_and_cache_untouched(loop):
    cache, _, handler, (conn,) = _setup(loop)

    _send(handler, conn, type="sale_update", data=["not", "a", "sale"])
    _send(handler, conn, type="stock_update", data={"id": "a"})

    assert [m["type"] for m in _drain(loop, conn)] == ["error", "error"]
    assert cache.sizes() == {"stockItems": 0, "sales": 0, "transactions": 0, "audit": 0}


def test_require_auth_gates_mutations_until_auth(loop):
    cache, _, handler, (conn,) = _setup(loop, require_auth=True)

    _send(handler, conn, type="audit_update", data={"action": "x"})
    assert _drain(loop, conn) == [{"type": "error", "message": "not authenticated"}]
    assert cache.get(CacheKind.AUDIT) == []

    _send(handler, conn, type="sync_request")
    assert _drain(loop, conn)[0]["type"] == "sync_response"

    _send(handler, conn, type="auth", userType="admin", userName="Boss")
    _send(handler, conn, type="audit_update", data={"action": "x"})
    assert [m["type"] for m in _drain(loop, conn)] == ["auth_success", "audit_update"]
    assert len(cache.get(CacheKind.AUDIT)) == 1


def test_sale_that_cannot_adjust_stock_is_still_fully_recorded(loop):
    cache, _, handler, (conn,) = _setup(loop)
    cache.replace_all(CacheKind.STOCK, [{"id": "a", "quantity": 10**400}])

    handler.handle(conn, '{"type":"sale_update","data":{"items":[{"itemId":"a","quantity":1.5}]}}')

    assert cache.get(CacheKind.STOCK) == [{"id": "a", "quantity": 10**400}]
    assert cache.sizes() == {"stockItems": 1, "sales": 1, "transactions": 0, "audit": 1}
    assert [m["type"] for m in _drain(loop, conn)] == ["sale_update", "audit_update"]


def test_unexpected_handler_failure_is_reported_and_socket_stays_usable(loop, monkeypatch):
    cache, _, handler, (conn, peer) = _setup(loop, peers=2)

    def _boom(*_args, **_kwargs):
        raise RuntimeError("kaput")

    monkeypatch.setattr(handler.sync, "record_transaction", _boom)
    _send(handler, conn, type="transaction_update", data={"amount": 1})

    assert _drain(loop, conn) == [{"type": "error", "message": "internal error"}]
    assert _drain(loop, peer) == []

    _send(handler, conn, type="sync_request")
    assert _drain(loop, conn) == [{"type": "sync_response", "data": cache.snapshot()}]
