from typing import Any, Dict, List, Optional

from .broadcast import Broadcaster
from .cache import CacheKind, SharedCache
from .connections import Session
from .logs import json_log

UPDATE_TYPES = {
    CacheKind.STOCK: "stock_update",
    CacheKind.SALES: "sale_update",
    CacheKind.TRANSACTIONS: "transaction_update",
    CacheKind.AUDIT: "audit_update",
}

CACHE_CLEARED = {"type": "cache_cleared", "message": "cache cleared"}


def _line_items(sale: dict) -> List[dict]:
    items = sale.get("items")
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, dict)]


class SyncService:
    """
    Every cache mutation goes through here, followed by its broadcast.
    The socket router and the HTTP gateway share this path so observers
    cannot tell which one a change came from.

    None of these methods await, so a mutation and the broadcasts it
    triggers are never interleaved with another handler.
    """

    def __init__(self, cache: SharedCache, broadcaster: Broadcaster):
        self.cache = cache
        self.broadcaster = broadcaster

    def _publish(self, kind: CacheKind) -> int:
        return self.broadcaster.broadcast({"type": UPDATE_TYPES[kind], "data": self.cache.get(kind)})

    def _append_audit(self, action: str, entity_type: str, details: dict, session: Optional[Session]) -> dict:
        return self.cache.append(
            CacheKind.AUDIT,
            {
                "action": action,
                "entityType": entity_type,
                "details": details,
                "userType": session.user_type if session else None,
                "userName": session.user_name if session else None,
            },
        )

    def add_stock_item(self, record: Any) -> dict:
        stored = self.cache.append(CacheKind.STOCK, record)
        self._publish(CacheKind.STOCK)
        return stored

    def replace_stock(self, records: Any) -> None:
        self.cache.replace_all(CacheKind.STOCK, records)
        self._publish(CacheKind.STOCK)

    def record_sale(self, sale: Any, session: Optional[Session] = None) -> dict:
        # All cache writes happen before the first broadcast.
        stored = self.cache.append(CacheKind.SALES, sale)
        adjusted = False
        for item in _line_items(stored):
            item_id = item.get("itemId", item.get("id"))
            if self.cache.adjust_stock(item_id, item.get("quantity")):
                adjusted = True
        self._append_audit("sale_created", "sale", stored, session)

        self._publish(CacheKind.SALES)
        if adjusted:
            self._publish(CacheKind.STOCK)
        self._publish(CacheKind.AUDIT)
        return stored

    def record_transaction(self, transaction: Any, session: Optional[Session] = None) -> dict:
        stored = self.cache.append(CacheKind.TRANSACTIONS, transaction)
        self._append_audit("transaction_created", "transaction", stored, session)
        self._publish(CacheKind.TRANSACTIONS)
        self._publish(CacheKind.AUDIT)
        return stored

    def record_audit(self, entry: Any) -> dict:
        stored = self.cache.append(CacheKind.AUDIT, entry)
        self._publish(CacheKind.AUDIT)
        return stored

    def merge(self, data: Any) -> List[CacheKind]:
        # Peer-supplied state; applied silently.
        return self.cache.merge(data)

    def snapshot(self) -> Dict[str, List[dict]]:
        return self.cache.snapshot()

    def clear(self) -> int:
        self.cache.clear()
        json_log("info", "sync.cache_cleared")
        return self.broadcaster.broadcast(dict(CACHE_CLEARED))
