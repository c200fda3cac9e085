"""
In-memory mirror of the POS records shared by every connected terminal.

The cache is the only writable copy. Every operation builds the new collection
first and swaps it in afterwards, so a rejected payload leaves nothing behind.
Reads hand out deep copies.
"""
import copy
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List


class CacheKind(str, Enum):
    STOCK = "stockItems"
    SALES = "sales"
    TRANSACTIONS = "transactions"
    AUDIT = "audit"


# Kinds whose records get a server-assigned creation timestamp.
TIMESTAMPED_KINDS = {CacheKind.SALES, CacheKind.TRANSACTIONS, CacheKind.AUDIT}


class CacheError(ValueError):
    pass


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_record(record: Any, kind: CacheKind) -> dict:
    if not isinstance(record, dict):
        raise CacheError(f"{kind.value} record must be an object")
    return record


def _require_records(records: Any, kind: CacheKind) -> List[dict]:
    if not isinstance(records, (list, tuple)):
        raise CacheError(f"{kind.value} must be a list of records")
    return [copy.deepcopy(_require_record(r, kind)) for r in records]


def _same_id(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return False
    return str(a).strip() == str(b).strip()


class SharedCache:
    def __init__(self) -> None:
        self._collections: Dict[CacheKind, List[dict]] = {kind: [] for kind in CacheKind}

    def get(self, kind: CacheKind) -> List[dict]:
        return copy.deepcopy(self._collections[CacheKind(kind)])

    def append(self, kind: CacheKind, record: Any) -> dict:
        """
        Add one record to the end of a collection and return the stored copy.
        Sales, transactions and audit entries are stamped with the server time.
        """
        kind = CacheKind(kind)
        stored = copy.deepcopy(_require_record(record, kind))
        if kind in TIMESTAMPED_KINDS:
            stored["timestamp"] = utc_timestamp()
        self._collections[kind] = self._collections[kind] + [stored]
        return copy.deepcopy(stored)

    def adjust_stock(self, item_id: Any, delta: Any) -> bool:
        """
        Decrement the quantity of the stock record whose `id` matches.
        Unknown ids and non-numeric deltas are ignored. Returns True when a record changed.
        """
        if isinstance(delta, bool) or not isinstance(delta, (int, float)):
            return False
        stock = self._collections[CacheKind.STOCK]
        for idx, item in enumerate(stock):
            if not _same_id(item.get("id"), item_id):
                continue
            current = item.get("quantity") or 0
            if isinstance(current, bool) or not isinstance(current, (int, float)):
                return False
            try:
                quantity = current - delta
            except (OverflowError, TypeError):
                # e.g. a huge int minus a float; treat the item as unadjustable
                return False
            updated = dict(item)
            updated["quantity"] = quantity
            self._collections[CacheKind.STOCK] = stock[:idx] + [updated] + stock[idx + 1:]
            return True
        return False

    def replace_all(self, kind: CacheKind, records: Iterable[Any]) -> None:
        kind = CacheKind(kind)
        self._collections[kind] = _require_records(records, kind)

    def merge(self, data: Any) -> List[CacheKind]:
        """
        Field-wise overwrite from a peer snapshot. Unknown keys are skipped;
        one malformed collection rejects the whole merge.
        """
        if not isinstance(data, dict):
            raise CacheError("sync data must be an object")
        staged: Dict[CacheKind, List[dict]] = {}
        for kind in CacheKind:
            if kind.value in data:
                staged[kind] = _require_records(data[kind.value], kind)
        self._collections.update(staged)
        return list(staged)

    def snapshot(self) -> Dict[str, List[dict]]:
        return {kind.value: copy.deepcopy(rows) for kind, rows in self._collections.items()}

    def sizes(self) -> Dict[str, int]:
        return {kind.value: len(rows) for kind, rows in self._collections.items()}

    def clear(self) -> None:
        self._collections = {kind: [] for kind in CacheKind}

