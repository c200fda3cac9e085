from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..cache import CacheKind, SharedCache
from ..deps import get_cache, get_sync
from ..sync import SyncService

router = APIRouter(prefix="/api/stock", tags=["stock"])


@router.get("")
async def list_stock(cache: SharedCache = Depends(get_cache)):
    return cache.get(CacheKind.STOCK)


@router.post("")
async def add_stock_item(record: Dict[str, Any] = Body(...), sync: SyncService = Depends(get_sync)):
    sync.add_stock_item(record)
    return {"success": True}
