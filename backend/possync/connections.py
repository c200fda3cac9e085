import asyncio
import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketState

from .logs import json_log


@dataclass(frozen=True)
class Session:
    user_type: str
    user_name: str


def encode_message(message: dict) -> str:
    return json.dumps(message, default=str)


# Queued messages per connection before a non-reading client is dropped.
DEFAULT_OUTBOX_LIMIT = 256

# "Try again later": sent when a client falls too far behind.
CLOSE_CODE_BACKLOG = 1013


class Connection:
    """
    One live socket plus its outbound queue.

    Sends never await: text is queued and written by `pump()`, which runs as
    its own task for the lifetime of the socket. Messages to one connection
    therefore leave in the order they were queued.

    The queue is bounded. A client that stops reading is closed on overflow
    and everything still queued for it is dropped.
    """

    def __init__(self, conn_id: str, websocket: Any, outbox_limit: int = DEFAULT_OUTBOX_LIMIT):
        self.id = conn_id
        self.websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=max(1, outbox_limit))
        self._closed = False
        self._overflowed = False

    @property
    def is_open(self) -> bool:
        if self._closed:
            return False
        for attr in ("client_state", "application_state"):
            if getattr(self.websocket, attr, WebSocketState.CONNECTED) != WebSocketState.CONNECTED:
                return False
        return True

    @property
    def overflowed(self) -> bool:
        return self._overflowed

    def deliver(self, text: str) -> bool:
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            json_log("warning", "ws.outbox.overflow", connection_id=self.id, pending=self._outbox.qsize())
            self._overflowed = True
            self._discard_pending()
            self.close()
            return False
        return True

    def send(self, message: dict) -> bool:
        return self.deliver(encode_message(message))

    def _discard_pending(self) -> None:
        while True:
            try:
                self._outbox.get_nowait()
            except asyncio.QueueEmpty:
                return

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._outbox.full():
            self._discard_pending()
        # Sentinel: pump() stops once everything queued before it is written.
        self._outbox.put_nowait(None)

    async def pump(self) -> None:
        while True:
            text = await self._outbox.get()
            if text is None:
                break
            try:
                await self.websocket.send_text(text)
            except Exception as exc:
                json_log("warning", "ws.send.failed", connection_id=self.id, error=str(exc))
                self._closed = True
                return
        if self._overflowed:
            try:
                await self.websocket.close(code=CLOSE_CODE_BACKLOG)
            except Exception as exc:
                json_log("warning", "ws.close.failed", connection_id=self.id, error=str(exc))


class ConnectionRegistry:
    def __init__(self, outbox_limit: int = DEFAULT_OUTBOX_LIMIT) -> None:
        self.outbox_limit = outbox_limit
        self._connections: Dict[str, Connection] = {}
        self._sessions: Dict[str, Session] = {}

    def register(self, websocket: Any) -> Connection:
        conn = Connection(uuid.uuid4().hex, websocket, self.outbox_limit)
        self._connections[conn.id] = conn
        return conn

    def unregister(self, conn_id: str) -> None:
        # Idempotent: close and error notifications may both arrive.
        self._connections.pop(conn_id, None)
        self._sessions.pop(conn_id, None)

    def get(self, conn_id: str) -> Optional[Connection]:
        return self._connections.get(conn_id)

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def count(self) -> int:
        return len(self._connections)

    def set_session(self, conn_id: str, session: Session) -> None:
        if conn_id not in self._connections:
            return
        self._sessions[conn_id] = session

    def session_for(self, conn_id: str) -> Optional[Session]:
        return self._sessions.get(conn_id)
