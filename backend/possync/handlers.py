from typing import Callable, Dict

from pydantic import ValidationError

from . import messages as m
from .cache import CacheError
from .connections import Connection, ConnectionRegistry, Session
from .logs import json_log
from .sync import SyncService
from .validation import normalize_name, normalize_role


class SocketMessageHandler:
    """
    Applies inbound socket frames to the cache.

    A connection is unauthenticated until a valid `auth` frame arrives; the
    registry's session table is the state. Bad frames are answered with an
    `error` message to the sender only and never close the socket.
    """

    def __init__(self, sync: SyncService, registry: ConnectionRegistry, *, require_auth: bool = False):
        self.sync = sync
        self.registry = registry
        self.require_auth = require_auth
        self._handlers: Dict[str, Callable[[Connection, m.SyncMessage], None]] = {
            m.AUTH: self._auth,
            m.STOCK_UPDATE: self._stock_update,
            m.SALE_UPDATE: self._sale_update,
            m.TRANSACTION_UPDATE: self._transaction_update,
            m.AUDIT_UPDATE: self._audit_update,
            m.SYNC_REQUEST: self._sync_request,
            m.SYNC_RESPONSE: self._sync_response,
        }

    def is_authenticated(self, conn: Connection) -> bool:
        return self.registry.session_for(conn.id) is not None

    def handle(self, conn: Connection, raw: str) -> None:
        try:
            message = m.SyncMessage.model_validate_json(raw)
        except ValidationError as exc:
            json_log("warning", "ws.message.invalid", connection_id=conn.id, errors=exc.error_count())
            conn.send(m.error_message("invalid message"))
            return

        handler = self._handlers.get(message.type)
        if handler is None:
            json_log("info", "ws.message.ignored", connection_id=conn.id, type=message.type)
            return

        if self.require_auth and message.type in m.MUTATING_TYPES and not self.is_authenticated(conn):
            json_log("warning", "ws.message.rejected", connection_id=conn.id, type=message.type, reason="unauthenticated")
            conn.send(m.error_message("not authenticated"))
            return

        try:
            handler(conn, message)
        except CacheError as exc:
            json_log("warning", "ws.message.rejected", connection_id=conn.id, type=message.type, reason=str(exc))
            conn.send(m.error_message(str(exc)))
        except Exception as exc:
            json_log("error", "ws.message.failed", connection_id=conn.id, type=message.type, error=str(exc))
            conn.send(m.error_message("internal error"))

    def _auth(self, conn: Connection, message: m.SyncMessage) -> None:
        role = normalize_role(message.userType)
        name = normalize_name(message.userName)
        if not role or not name:
            conn.send(m.error_message("auth requires userType (user|admin) and userName"))
            return
        self.registry.set_session(conn.id, Session(user_type=role, user_name=name))
        json_log("info", "ws.auth", connection_id=conn.id, user_type=role, user_name=name)
        conn.send({"type": "auth_success", "message": "authenticated", "userType": role, "userName": name})

    def _stock_update(self, conn: Connection, message: m.SyncMessage) -> None:
        self.sync.replace_stock(message.data)

    def _sale_update(self, conn: Connection, message: m.SyncMessage) -> None:
        self.sync.record_sale(message.data, self.registry.session_for(conn.id))

    def _transaction_update(self, conn: Connection, message: m.SyncMessage) -> None:
        self.sync.record_transaction(message.data, self.registry.session_for(conn.id))

    def _audit_update(self, conn: Connection, message: m.SyncMessage) -> None:
        self.sync.record_audit(message.data)

    def _sync_request(self, conn: Connection, message: m.SyncMessage) -> None:
        conn.send({"type": m.SYNC_RESPONSE, "data": self.sync.snapshot()})

    def _sync_response(self, conn: Connection, message: m.SyncMessage) -> None:
        self.sync.merge(message.data)
