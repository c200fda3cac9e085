from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..cache import CacheKind, SharedCache
from ..deps import get_cache, get_sync
from ..sync import SyncService

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("")
async def list_audit_entries(cache: SharedCache = Depends(get_cache)):
    return cache.get(CacheKind.AUDIT)


@router.post("")
async def add_audit_entry(entry: Dict[str, Any] = Body(...), sync: SyncService = Depends(get_sync)):
    sync.record_audit(entry)
    return {"success": True}
