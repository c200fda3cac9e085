from contextlib import contextmanager
from typing import Optional

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .config import settings

# Created on first use so the service starts (and tests run) without a database.
_pool: Optional[ConnectionPool] = None


def db_enabled() -> bool:
    return bool(settings.db_url)


def _get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        _pool = ConnectionPool(
            conninfo=settings.db_url,
            min_size=settings.db_pool_min,
            max_size=settings.db_pool_max,
            timeout=settings.db_connect_timeout,
            kwargs={"row_factory": dict_row},
            open=True,
        )
    return _pool


@contextmanager
def get_conn():
    # commit on success, rollback on exception, return connection to pool
    with _get_pool().connection() as conn:
        with conn:
            yield conn


def probe() -> None:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1 AS ok")
            cur.fetchone()


def close_pools() -> None:
    global _pool
    if _pool is None:
        return
    try:
        _pool.close()
    finally:
        _pool = None
