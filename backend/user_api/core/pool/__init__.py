"""
MySQL connection and connection pool for the user datastore.

No driver layer: pymysql is installed via pip; Settings (host, user, ...) is enough.
"""

from .connect import connect, cursor_to_dicts, execute
from .health import health_check
from .manager import Datastore, Transaction

__all__ = [
    "connect",
    "execute",
    "cursor_to_dicts",
    "health_check",
    "Datastore",
    "Transaction",
]
