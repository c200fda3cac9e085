import os
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .broadcast import Broadcaster
from .cache import CacheError, SharedCache
from .config import settings
from .connections import ConnectionRegistry
from .db import close_pools
from .handlers import SocketMessageHandler
from .logs import json_log
from .routers.audit import router as audit_router
from .routers.auth import router as auth_router
from .routers.sales import router as sales_router
from .routers.stock import router as stock_router
from .routers.sync_socket import router as sync_socket_router
from .routers.system import _current_request_id, fallback_router, router as system_router
from .routers.transactions import router as transactions_router
from .sync import SyncService

API_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def create_app(
    cache: Optional[SharedCache] = None,
    registry: Optional[ConnectionRegistry] = None,
    *,
    require_socket_auth: Optional[bool] = None,
    static_root: Optional[str] = None,
) -> FastAPI:
    app = FastAPI(title="POS Sync API", version=settings.api_version)
    started_at = datetime.now(timezone.utc)

    # One cache and one registry per app; everything else is wired to them.
    cache = cache if cache is not None else SharedCache()
    registry = registry if registry is not None else ConnectionRegistry(outbox_limit=settings.socket_outbox_limit)
    sync = SyncService(cache, Broadcaster(registry))
    if require_socket_auth is None:
        require_socket_auth = settings.require_socket_auth
    app.state.cache = cache
    app.state.registry = registry
    app.state.sync = sync
    app.state.socket_handler = SocketMessageHandler(sync, registry, require_auth=require_socket_auth)

    @app.exception_handler(CacheError)
    def _cache_error(_req: Request, exc: Exception):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    def _request_validation_error(_req: Request, exc: Exception):
        content = {"detail": "validation failed"}
        if settings.env in {"local", "dev"} and hasattr(exc, "errors"):
            content["errors"] = exc.errors()
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(Exception)
    def _unhandled_exception(req: Request, exc: Exception):
        rid = _current_request_id(req)
        json_log(
            "error",
            "http.request.unhandled",
            request_id=rid,
            method=req.method,
            path=req.url.path,
            error=str(exc),
        )
        content = {"detail": "internal error", "request_id": rid}
        if settings.env in {"local", "dev"}:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content, headers=API_CORS_HEADERS)

    # Correlation id + basic structured request logging.
    @app.middleware("http")
    async def _request_logging(request: Request, call_next):
        rid = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
        request.state.request_id = rid
        started = time.time()
        path = request.url.path
        method = request.method
        client_ip = (request.client.host if request.client else None)

        try:
            response = await call_next(request)
        except Exception as exc:
            dur_ms = int((time.time() - started) * 1000)
            json_log(
                "error",
                "http.request.error",
                request_id=rid,
                method=method,
                path=path,
                client_ip=client_ip,
                duration_ms=dur_ms,
                error=str(exc),
            )
            raise

        response.headers["X-Request-Id"] = rid
        response.headers["X-Content-Type-Options"] = "nosniff"
        if path.startswith("/api"):
            for name, value in API_CORS_HEADERS.items():
                response.headers.setdefault(name, value)
        if path != "/api/health":
            dur_ms = int((time.time() - started) * 1000)
            json_log(
                "info",
                "http.request",
                request_id=rid,
                method=method,
                path=path,
                status_code=response.status_code,
                client_ip=client_ip,
                duration_ms=dur_ms,
            )
        return response

    # Terminals are served from other hosts on the shop LAN.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(stock_router)
    app.include_router(sales_router)
    app.include_router(transactions_router)
    app.include_router(audit_router)
    app.include_router(auth_router)
    app.include_router(system_router)
    app.include_router(sync_socket_router)
    app.include_router(fallback_router)

    @app.on_event("startup")
    def _startup():
        json_log(
            "info",
            "startup",
            env=settings.env,
            version=settings.api_version,
            started_at=started_at.isoformat(),
            require_socket_auth=require_socket_auth,
        )

    @app.on_event("shutdown")
    def _shutdown():
        close_pools()

    root = static_root if static_root is not None else settings.static_root
    if root and os.path.isdir(root):
        # Mounted last so /api and /ws win.
        app.mount("/", StaticFiles(directory=root, html=True), name="static")

    return app


app = create_app()
