"""
Connection pool for the user datastore.

One Datastore per process, shared by every request thread. Reuses connections
to avoid open/close on every request. Includes health-check on checkout and
max-age eviction; the lock guards only the idle list, pymysql connections are
never shared between threads while checked out.
"""

import logging
import threading
import time
from typing import Any, NamedTuple

import pymysql

from user_api.core.config import Settings
from user_api.core.errors import DatastoreError, DatastoreUnavailable

from .connect import connect, cursor_to_dicts, execute
from .health import health_check

_log = logging.getLogger(__name__)


_PING_IDLE_THRESHOLD = 30.0  # only ping connections idle longer than this (seconds)


class _PoolEntry(NamedTuple):
    conn: Any
    created_at: float  # time.monotonic() when the connection was opened
    last_used: float   # time.monotonic() when last returned to pool


class Transaction:
    """
    A single-connection transaction. The connection goes back to the pool
    as soon as commit() or rollback() has run, whether or not it succeeded.
    """

    def __init__(self, datastore: "Datastore", conn: Any) -> None:
        self._datastore = datastore
        self._conn = conn
        self._done = False

    def exec(self, sql: str, params: dict | list | tuple | None = None) -> int:
        """Execute one statement inside the transaction; returns the affected row count."""
        if self._done:
            raise DatastoreError("transaction already finished")
        try:
            cur = execute(self._conn, sql, params)
        except pymysql.MySQLError as e:
            raise DatastoreError(f"exec failed: {e}") from e
        try:
            return cur.rowcount
        finally:
            cur.close()

    def commit(self) -> None:
        self._finish(self._conn.commit, "commit")

    def rollback(self) -> None:
        self._finish(self._conn.rollback, "rollback")

    def _finish(self, action: Any, name: str) -> None:
        if self._done:
            raise DatastoreError("transaction already finished")
        self._done = True
        try:
            action()
        except pymysql.MySQLError as e:
            # state of the connection is unknown; do not hand it out again
            self._datastore._discard(self._conn)
            raise DatastoreError(f"{name} failed: {e}") from e
        self._datastore._release(self._conn)


class Datastore:
    """Pooled access to the MySQL database holding the ``user`` table."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._pool: list[_PoolEntry] = []
        self._lock = threading.Lock()
        self._pool_size: int = settings.DB_POOL_SIZE
        self._max_age: float = float(settings.DB_POOL_MAX_AGE_SEC)
        self._closed = False

    @classmethod
    def open(cls, settings: Settings) -> "Datastore":
        """
        Open and ping the first connection; the verified connection seeds the pool.

        Raises DatastoreUnavailable when the server cannot be reached or does not
        answer SELECT 1, so the process never serves traffic against a dead store.
        """
        try:
            conn = connect(settings)
        except pymysql.MySQLError as e:
            raise DatastoreUnavailable(f"connect to {settings.mysql_url} failed: {e}") from e
        if not health_check(conn):
            cls._close_quiet(conn)
            raise DatastoreUnavailable(f"ping {settings.mysql_url} failed")
        datastore = cls(settings)
        datastore._release(conn)
        _log.info("Datastore opened: %s", settings.mysql_url)
        return datastore

    @property
    def closed(self) -> bool:
        return self._closed

    def query(
        self, sql: str, params: dict | list | tuple | None = None
    ) -> list[dict[str, Any]]:
        """Run a read statement and return its rows as dicts in cursor order."""
        conn = self._checkout()
        cur = None
        try:
            cur = execute(conn, sql, params)
            return cursor_to_dicts(cur)
        except pymysql.MySQLError as e:
            raise DatastoreError(f"query failed: {e}") from e
        finally:
            if cur is not None:
                cur.close()
            self._release(conn)

    def begin(self) -> Transaction:
        """Check out a connection and start a transaction on it."""
        conn = self._checkout()
        try:
            conn.begin()
        except pymysql.MySQLError as e:
            self._discard(conn)
            raise DatastoreError(f"begin failed: {e}") from e
        return Transaction(self, conn)

    def close(self) -> None:
        """
        Close pooled connections and refuse further checkouts.

        Connections still checked out are closed when they are released.
        A second call is a no-op. Raises DatastoreError if any close failed.
        """
        if not self._closed:
            _log.info("Closing datastore: %s", self.stats())
        with self._lock:
            if self._closed:
                return
            self._closed = True
            entries = list(self._pool)
            self._pool.clear()
        errors: list[Exception] = []
        for e in entries:
            try:
                e.conn.close()
            except Exception as exc:  # pymysql raises Error("Already closed") among others
                errors.append(exc)
        if errors:
            raise DatastoreError(f"close failed: {errors[0]}") from errors[0]

    def stats(self) -> dict[str, int]:
        """Return pool statistics for monitoring."""
        with self._lock:
            return {"idle_connections": len(self._pool)}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _checkout(self) -> Any:
        """Get a healthy connection (from pool or freshly opened)."""
        now = time.monotonic()
        while True:
            entry = self._pop()
            if entry is None:
                break
            if self._is_expired(entry):
                self._close_quiet(entry.conn)
                continue
            idle_sec = now - entry.last_used
            if idle_sec > _PING_IDLE_THRESHOLD and not health_check(entry.conn):
                self._close_quiet(entry.conn)
                continue
            return entry.conn

        try:
            return connect(self._settings)
        except pymysql.MySQLError as e:
            raise DatastoreError(f"connect failed: {e}") from e

    def _release(self, conn: Any) -> None:
        """Return a connection to the pool (or close it if the pool is full or closed)."""
        try:
            conn.rollback()
        except Exception:
            self._close_quiet(conn)
            return

        with self._lock:
            if not self._closed and len(self._pool) < self._pool_size:
                now = time.monotonic()
                self._pool.append(_PoolEntry(conn=conn, created_at=now, last_used=now))
                return

        self._close_quiet(conn)

    def _discard(self, conn: Any) -> None:
        self._close_quiet(conn)

    def _pop(self) -> _PoolEntry | None:
        with self._lock:
            if self._closed:
                raise DatastoreError("datastore is closed")
            if self._pool:
                return self._pool.pop()
        return None

    def _is_expired(self, entry: _PoolEntry) -> bool:
        return (time.monotonic() - entry.created_at) > self._max_age

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except Exception:
            _log.debug("Ignoring error while closing connection", exc_info=True)
