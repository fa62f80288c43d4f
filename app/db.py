"""DB helper for the Supabase Postgres that holds layout metadata."""

from __future__ import annotations

import contextvars
import logging
import os
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterable

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool


def get_db_url() -> str:
    url = os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_DB_URL or DATABASE_URL is required when USE_DB=1")
    return url


_POOL: SimpleConnectionPool | None = None
_POOL_LOCK = threading.Lock()
_logger = logging.getLogger("layoutdesk.db")
_query_logger = logging.getLogger("layoutdesk.db.query")
_DB_STATS: contextvars.ContextVar[dict | None] = contextvars.ContextVar("layoutdesk_db_stats", default=None)
_SLOW_MS = float(os.getenv("LAYOUTDESK_QUERY_SLOW_MS", "200"))
_LOG_ALL = os.getenv("LAYOUTDESK_QUERY_LOG", "").strip() == "1"


def init_pool(minconn: int | None = None, maxconn: int | None = None) -> None:
    global _POOL
    with _POOL_LOCK:
        if _POOL is not None:
            return
        if minconn is None:
            minconn = int(os.getenv("LAYOUTDESK_DB_POOL_MIN", "1"))
        if maxconn is None:
            maxconn = int(os.getenv("LAYOUTDESK_DB_POOL_MAX", "5"))
        _POOL = SimpleConnectionPool(minconn, maxconn, dsn=get_db_url())
        _logger.info("db_pool_ready min=%s max=%s", minconn, maxconn)


def _get_pool() -> SimpleConnectionPool:
    if _POOL is None:
        init_pool()
    return _POOL


def reset_db_stats() -> None:
    _DB_STATS.set({"queries": 0, "total_ms": 0.0})


def get_db_stats() -> dict:
    stats = _DB_STATS.get()
    if not isinstance(stats, dict):
        return {"queries": 0, "total_ms": 0.0}
    return stats


def _record(query_name: str | None, elapsed_ms: float, rowcount: int | None) -> None:
    stats = dict(get_db_stats())
    stats["queries"] = stats.get("queries", 0) + 1
    stats["total_ms"] = stats.get("total_ms", 0.0) + elapsed_ms
    _DB_STATS.set(stats)
    if elapsed_ms >= _SLOW_MS:
        _query_logger.warning("db_slow_query=%s ms=%.1f rowcount=%s", query_name or "unnamed", elapsed_ms, rowcount)
    elif _LOG_ALL or query_name:
        _query_logger.info("db_query=%s ms=%.1f rowcount=%s", query_name or "unnamed", elapsed_ms, rowcount)


@contextmanager
def get_conn():
    """Borrow a pooled connection; commit on success, roll back on error."""
    pool = _get_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def fetch_one(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> dict | None:
    start = time.perf_counter()
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(sql, params or [])
        row = cur.fetchone()
        rowcount = cur.rowcount
    _record(query_name, (time.perf_counter() - start) * 1000, rowcount)
    return dict(row) if row else None


def fetch_all(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> list[dict]:
    start = time.perf_counter()
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(sql, params or [])
        rows = [dict(r) for r in cur.fetchall()]
        rowcount = cur.rowcount
    _record(query_name, (time.perf_counter() - start) * 1000, rowcount)
    return rows


def execute(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> int:
    start = time.perf_counter()
    with conn.cursor() as cur:
        cur.execute(sql, params or [])
        rowcount = cur.rowcount
    _record(query_name, (time.perf_counter() - start) * 1000, rowcount)
    return rowcount
