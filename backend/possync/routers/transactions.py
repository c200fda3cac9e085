from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..cache import CacheKind, SharedCache
from ..deps import get_cache, get_sync
from ..sync import SyncService

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("")
async def list_transactions(cache: SharedCache = Depends(get_cache)):
    return cache.get(CacheKind.TRANSACTIONS)


@router.post("")
async def record_transaction(transaction: Dict[str, Any] = Body(...), sync: SyncService = Depends(get_sync)):
    sync.record_transaction(transaction)
    return {"success": True}
