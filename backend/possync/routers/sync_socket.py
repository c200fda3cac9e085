import asyncio
from contextlib import suppress

from fastapi import APIRouter, Depends, WebSocket
from fastapi.responses import PlainTextResponse

from ..connections import ConnectionRegistry
from ..deps import get_registry, get_socket_handler
from ..handlers import SocketMessageHandler
from ..logs import json_log

router = APIRouter(tags=["sync"])


@router.get("/ws", include_in_schema=False)
async def sync_socket_plain_http():
    return PlainTextResponse("Expected WebSocket upgrade", status_code=400)


@router.websocket("/ws")
async def sync_socket(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_registry),
    handler: SocketMessageHandler = Depends(get_socket_handler),
):
    await websocket.accept()
    conn = registry.register(websocket)
    sender = asyncio.create_task(conn.pump())
    json_log("info", "ws.connected", connection_id=conn.id, connections=registry.count())
    conn.send({"type": "connected", "message": "connected to server", "connectionId": conn.id})

    close_code = None
    try:
        # Frames from one socket are handled strictly in arrival order.
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                close_code = frame.get("code")
                break
            raw = frame.get("text")
            if raw is None:
                raw = (frame.get("bytes") or b"").decode("utf-8", errors="replace")
            handler.handle(conn, raw)
    except Exception as exc:
        # Transport failure; message errors are answered inside handler.handle().
        json_log("error", "ws.error", connection_id=conn.id, error=str(exc))
        try:
            await websocket.close(code=1011)
        except Exception as close_exc:
            json_log("warning", "ws.close.failed", connection_id=conn.id, error=str(close_exc))
    finally:
        registry.unregister(conn.id)
        conn.close()
        sender.cancel()
        with suppress(asyncio.CancelledError):
            await sender
        json_log("info", "ws.disconnected", connection_id=conn.id, code=close_code, connections=registry.count())
