import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

ISO_FORMAT = "%Y-%m-%d %H:%M:%S"


def dict_factory(cursor, row):
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def get_conn(db_path: str = "donorsync.db") -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False,
                           isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = dict_factory
    return conn


@contextmanager
def tx(conn: sqlite3.Connection):
    if conn.in_transaction:
        # nested call joins the outer transaction
        yield
        return
    try:
        conn.execute("BEGIN")
        yield
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.replace(microsecond=0).strftime(ISO_FORMAT)


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
