from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from ..cache import SharedCache
from ..config import BUSINESS_SETTINGS, settings
from ..connections import ConnectionRegistry
from ..db import db_enabled, probe
from ..deps import get_cache, get_registry, get_sync
from ..logs import json_log
from ..sync import SyncService

router = APIRouter(prefix="/api", tags=["system"])

SERVICE_NAME = "possync-backend"


def _current_request_id(req: Request) -> str:
    return getattr(req.state, "request_id", "") or req.headers.get("x-request-id") or ""


@router.get("/settings")
async def get_business_settings():
    return dict(BUSINESS_SETTINGS)


@router.get("/health")
async def health(
    req: Request,
    cache: SharedCache = Depends(get_cache),
    registry: ConnectionRegistry = Depends(get_registry),
):
    return {
        "status": "ok",
        "connections": registry.count(),
        "cacheSizes": cache.sizes(),
        "service": SERVICE_NAME,
        "version": settings.api_version,
        "env": settings.env,
        "request_id": _current_request_id(req),
    }


def _db_health():
    try:
        probe()
        return True, None
    except Exception as exc:
        return False, str(exc)


@router.get("/health/ready")
async def health_ready(req: Request):
    request_id = _current_request_id(req)
    if not db_enabled():
        return {"status": "ready", "db": "disabled", "service": SERVICE_NAME, "request_id": request_id}
    # The probe blocks on the network, keep it off the event loop.
    ok, err = await run_in_threadpool(_db_health)
    if not ok:
        json_log("warning", "db.probe_failed", request_id=request_id, error=err)
        content = {"status": "degraded", "db": "down", "service": SERVICE_NAME, "request_id": request_id}
        if settings.env in {"local", "dev"}:
            content["error"] = err
        return JSONResponse(status_code=503, content=content)
    return {"status": "ready", "db": "ok", "service": SERVICE_NAME, "request_id": request_id}


@router.post("/clear-cache")
async def clear_cache(sync: SyncService = Depends(get_sync)):
    notified = sync.clear()
    return {"success": True, "message": "cache cleared", "notified": notified}


# Registered last: anything under /api that no other route matched.
fallback_router = APIRouter(prefix="/api", include_in_schema=False)


@fallback_router.options("/{path:path}")
async def api_options(path: str):
    # CORS headers are attached by the request middleware.
    return Response(status_code=200)


@fallback_router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def api_not_found(path: str):
    raise HTTPException(status_code=404, detail="not found")
