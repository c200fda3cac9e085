from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..cache import CacheKind, SharedCache
from ..deps import get_cache, get_sync
from ..sync import SyncService

router = APIRouter(prefix="/api/sales", tags=["sales"])


@router.get("")
async def list_sales(cache: SharedCache = Depends(get_cache)):
    return cache.get(CacheKind.SALES)


@router.post("")
async def record_sale(sale: Dict[str, Any] = Body(...), sync: SyncService = Depends(get_sync)):
    """
    Same path as a socket `sale_update`: line items decrement stock and an
    audit entry is written. HTTP callers carry no socket session.
    """
    sync.record_sale(sale)
    return {"success": True}
