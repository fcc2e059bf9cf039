import argparse
import sqlite3
from pathlib import Path

from .blood_types import ALL_TYPES
from .db import get_conn

_TYPES_SQL = ",".join(repr(bt) for bt in ALL_TYPES)

UNITS_SQL = f'''
CREATE TABLE IF NOT EXISTS blood_units (
  id TEXT PRIMARY KEY,
  blood_type TEXT NOT NULL CHECK(blood_type IN ({_TYPES_SQL})),
  collection_date TEXT NOT NULL,
  expiration_date TEXT NOT NULL,
  test_result TEXT NOT NULL CHECK(test_result IN ('pending','passed','failed')) DEFAULT 'pending',
  availability TEXT NOT NULL CHECK(availability IN ('available','reserved','used')) DEFAULT 'available',
  location TEXT NOT NULL DEFAULT '',
  donor_id TEXT,
  batch_number TEXT,
  volume_ml INTEGER NOT NULL DEFAULT 450,
  temperature REAL
);
'''

REQUESTS_SQL = f'''
CREATE TABLE IF NOT EXISTS blood_requests (
  id TEXT PRIMARY KEY,
  blood_type TEXT NOT NULL CHECK(blood_type IN ({_TYPES_SQL})),
  units INTEGER NOT NULL CHECK(units > 0),
  urgency TEXT NOT NULL,
  hospital TEXT NOT NULL,
  hospital_type TEXT NOT NULL DEFAULT 'Government',
  address TEXT NOT NULL DEFAULT '',
  distance_km REAL NOT NULL DEFAULT 0,
  requested_date TEXT,
  reason TEXT NOT NULL DEFAULT '',
  contact_person TEXT NOT NULL DEFAULT '',
  contact_phone TEXT NOT NULL DEFAULT '',
  status TEXT NOT NULL DEFAULT 'Active',
  match_percentage INTEGER NOT NULL DEFAULT 0,
  state TEXT NOT NULL DEFAULT '',
  district TEXT NOT NULL DEFAULT '',
  city TEXT NOT NULL DEFAULT ''
);
'''

EMERGENCIES_SQL = f'''
CREATE TABLE IF NOT EXISTS emergencies (
  id TEXT PRIMARY KEY,
  blood_type TEXT NOT NULL CHECK(blood_type IN ({_TYPES_SQL})),
  hospital TEXT NOT NULL,
  units_needed INTEGER NOT NULL DEFAULT 1,
  created_at TEXT NOT NULL,
  status TEXT NOT NULL CHECK(status IN ('active','paused','fulfilled','cancelled')) DEFAULT 'active',
  paused_at TEXT,
  resolved_at TEXT,
  manual_levels INTEGER NOT NULL DEFAULT 0,
  dispatched_level INTEGER NOT NULL DEFAULT 0
);
'''

LEDGER_SQL = '''
CREATE TABLE IF NOT EXISTS alert_ledger (
  blood_type TEXT NOT NULL,
  alert_type TEXT NOT NULL,
  acknowledged_at TEXT NOT NULL,
  PRIMARY KEY (blood_type, alert_type)
);
'''

OUTBOX_SQL = '''
CREATE TABLE IF NOT EXISTS outbox (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  created_at TEXT NOT NULL,
  topic TEXT NOT NULL,
  payload_json TEXT NOT NULL,
  attempts INTEGER NOT NULL DEFAULT 0,
  sent_at TEXT,
  last_error TEXT
);
'''

AUDIT_SQL = '''
CREATE TABLE IF NOT EXISTS audit_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  at TEXT NOT NULL DEFAULT (datetime('now')),
  actor TEXT,
  action TEXT NOT NULL,
  entity TEXT,
  entity_id TEXT,
  details_json TEXT
);
'''

TRIGGERS = [
    """
    CREATE TRIGGER IF NOT EXISTS trg_audit_no_update
    BEFORE UPDATE ON audit_log
    BEGIN
        SELECT RAISE(ABORT,'audit log is immutable');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_audit_no_delete
    BEFORE DELETE ON audit_log
    BEGIN
        SELECT RAISE(ABORT,'audit log is immutable');
    END;
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_units_bt ON blood_units(blood_type);",
    "CREATE INDEX IF NOT EXISTS idx_units_expiration ON blood_units(expiration_date);",
    "CREATE INDEX IF NOT EXISTS idx_requests_bt ON blood_requests(blood_type);",
    "CREATE INDEX IF NOT EXISTS idx_outbox_pending ON outbox(sent_at);",
    "CREATE INDEX IF NOT EXISTS idx_audit_at ON audit_log(at);",
]


def ensure_schema(conn: sqlite3.Connection):
    cur = conn.cursor()
    for stmt in (UNITS_SQL, REQUESTS_SQL, EMERGENCIES_SQL, LEDGER_SQL, OUTBOX_SQL, AUDIT_SQL):
        cur.execute(stmt)
    for stmt in TRIGGERS:
        cur.execute(stmt)
    for stmt in INDEXES:
        cur.execute(stmt)
    conn.commit()


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--db", default="donorsync.db")
    args = ap.parse_args()

    Path(args.db).parent.mkdir(parents=True, exist_ok=True)
    with get_conn(args.db) as conn:
        ensure_schema(conn)
    print("Migration complete.")


if __name__ == "__main__":
    main()
