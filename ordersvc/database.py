"""Pooled SQLite storage with connection retries and transactions."""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta

_log = logging.getLogger(__name__)

_MEMORY_URLS = {":memory:", "sqlite://", "sqlite:///:memory:", "sqlite://:memory:"}

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS orders (
        order_uid TEXT PRIMARY KEY,
        track_number TEXT NOT NULL,
        entry TEXT NOT NULL,
        locale TEXT NOT NULL,
        internal_signature TEXT NOT NULL,
        customer_id TEXT NOT NULL,
        delivery_service TEXT NOT NULL,
        shardkey TEXT NOT NULL,
        sm_id INTEGER NOT NULL,
        date_created TEXT NOT NULL,
        oof_shard TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deliveries (
        order_uid TEXT PRIMARY KEY REFERENCES orders (order_uid) ON DELETE CASCADE,
        name TEXT NOT NULL,
        phone TEXT NOT NULL,
        zip TEXT NOT NULL,
        city TEXT NOT NULL,
        address TEXT NOT NULL,
        region TEXT NOT NULL,
        email TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        "transaction" TEXT PRIMARY KEY,
        order_uid TEXT NOT NULL UNIQUE REFERENCES orders (order_uid) ON DELETE CASCADE,
        request_id TEXT NOT NULL,
        currency TEXT NOT NULL,
        provider TEXT NOT NULL,
        amount INTEGER NOT NULL,
        payment_dt INTEGER NOT NULL,
        bank TEXT NOT NULL,
        delivery_cost INTEGER NOT NULL,
        goods_total INTEGER NOT NULL,
        custom_fee INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_uid TEXT NOT NULL REFERENCES orders (order_uid) ON DELETE CASCADE,
        chrt_id INTEGER NOT NULL,
        track_number TEXT NOT NULL,
        price INTEGER NOT NULL,
        rid TEXT NOT NULL,
        name TEXT NOT NULL,
        sale INTEGER NOT NULL,
        size TEXT NOT NULL,
        total_price INTEGER NOT NULL,
        nm_id INTEGER NOT NULL,
        brand TEXT NOT NULL,
        status INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS items_order_uid_idx ON items (order_uid)",
    "CREATE INDEX IF NOT EXISTS orders_date_created_idx ON orders (date_created)",
)


def _parse_url(url: str) -> tuple[str, bool]:
    """Return the connect target and whether it is a URI."""
    if not url:
        raise ValueError("database URL must not be empty")
    if url in _MEMORY_URLS:
        return f"file:ordersvc-{uuid.uuid4().hex}?mode=memory&cache=shared", True
    if url.startswith("sqlite:///"):
        return url[len("sqlite:///"):], False
    if "://" in url:
        raise ValueError(f"unsupported database URL: {url!r}")
    return url, False


class Database:
    """A small pool of SQLite connections to one database."""

    def __init__(
        self,
        url: str,
        max_pool_size: int = 1,
        conn_attempts: int = 10,
        conn_timeout: timedelta | float = 1.0,
    ) -> None:
        if max_pool_size < 1:
            raise ValueError("max_pool_size must be at least 1")
        self.max_pool_size = max_pool_size
        self.conn_timeout = (
            conn_timeout.total_seconds() if isinstance(conn_timeout, timedelta) else float(conn_timeout)
        )
        self._target, self._uri = _parse_url(url)
        self._idle: queue.Queue[sqlite3.Connection] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

        attempts = conn_attempts
        last_error: Exception | None = None
        while attempts > 0:
            try:
                connection = self._connect()
                break
            except sqlite3.Error as exc:
                last_error = exc
                _log.warning("database is trying to connect, attempts left: %d", attempts)
                time.sleep(self.conn_timeout)
                attempts -= 1
        else:
            raise ConnectionError(f"cannot connect to the database: {last_error}") from last_error

        self._opened = 1
        self._idle.put(connection)

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._target, uri=self._uri, check_same_thread=False, isolation_level=None
        )
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _acquire(self) -> sqlite3.Connection:
        with self._lock:
            if self._closed:
                raise RuntimeError("database is closed")
            try:
                return self._idle.get_nowait()
            except queue.Empty:
                pass
            create = self._opened < self.max_pool_size
            if create:
                self._opened += 1
        if create:
            try:
                return self._connect()
            except BaseException:
                with self._lock:
                    self._opened -= 1
                raise
        while True:
            try:
                return self._idle.get(timeout=0.1)
            except queue.Empty:
                if self._closed:
                    raise RuntimeError("database is closed") from None

    def _release(self, connection: sqlite3.Connection) -> None:
        with self._lock:
            if not self._closed:
                self._idle.put(connection)
                return
            self._opened -= 1
        connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction; commit on success, roll back on error."""
        connection = self._acquire()
        try:
            connection.execute("BEGIN")
            try:
                yield connection
            except BaseException:
                connection.rollback()
                raise
            connection.commit()
        finally:
            self._release(connection)

    def create_schema(self) -> None:
        """Create the order tables if they do not exist yet."""
        with self.transaction() as connection:
            for statement in _SCHEMA:
                connection.execute(statement)

    def close(self) -> None:
        """Close every idle connection; the pool cannot be used afterwards."""
        with self._lock:
            self._closed = True
            idle = []
            while True:
                try:
                    idle.append(self._idle.get_nowait())
                except queue.Empty:
                    break
            self._opened -= len(idle)
        for connection in idle:
            connection.close()