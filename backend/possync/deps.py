from fastapi.requests import HTTPConnection

from .cache import SharedCache
from .connections import ConnectionRegistry
from .handlers import SocketMessageHandler
from .sync import SyncService


# The app owns one of each; handlers receive them through these dependencies.
# Async so they resolve on the event loop rather than in the threadpool.
async def get_cache(conn: HTTPConnection) -> SharedCache:
    return conn.app.state.cache


async def get_registry(conn: HTTPConnection) -> ConnectionRegistry:
    return conn.app.state.registry


async def get_sync(conn: HTTPConnection) -> SyncService:
    return conn.app.state.sync


async def get_socket_handler(conn: HTTPConnection) -> SocketMessageHandler:
    return conn.app.state.socket_handler
