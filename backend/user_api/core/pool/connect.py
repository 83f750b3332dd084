"""
MySQL connection helpers.

Uses pymysql; Settings (host, port, user, password, database) is enough to open a connection.
"""

from typing import Any

import pymysql

from user_api.core.config import Settings


def connect(settings: Settings) -> pymysql.connections.Connection:
    """
    Open a connection to the configured MySQL database.

    The port is MYSQL_PORT (3306 unless overridden). Raises pymysql.MySQLError
    when the server refuses or cannot be reached within DB_CONNECT_TIMEOUT.
    """
    return pymysql.connect(
        host=settings.MYSQL_HOST,
        port=int(settings.MYSQL_PORT),
        user=settings.MYSQL_USER,
        password=settings.MYSQL_PASSWORD,
        database=settings.MYSQL_DATABASE,
        connect_timeout=settings.DB_CONNECT_TIMEOUT,
        charset="utf8mb4",
    )


def execute(
    conn: Any,
    sql: str,
    params: dict | list | tuple | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor) or cursor.rowcount,
    and is responsible for closing it. On failure the cursor is closed before re-raising.
    """
    cur = conn.cursor()
    try:
        if params is not None:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    except Exception:
        cur.close()
        raise
    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts, in cursor order."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]
