"""
Repository interfaces for units, requests and emergencies.

Engines in ``inventory``/``alerts``/``escalation`` only ever see the snapshots
returned by ``all()``; nothing in them reads or writes a store.
"""
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import asdict, replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .alerts import AlertLedger
from .db import from_iso, to_iso, tx
from .escalation import EmergencyRequest
from .filters import BloodRequest
from .inventory import BloodUnit


class UnknownRecord(LookupError):
    pass


class UnitStore(ABC):
    @abstractmethod
    def all(self) -> List[BloodUnit]: ...

    @abstractmethod
    def get(self, unit_id: str) -> BloodUnit: ...

    @abstractmethod
    def add(self, unit: BloodUnit) -> None: ...

    @abstractmethod
    def update(self, unit: BloodUnit) -> None: ...


class RequestStore(ABC):
    @abstractmethod
    def all(self) -> List[BloodRequest]: ...

    @abstractmethod
    def add(self, request: BloodRequest) -> None: ...

    @abstractmethod
    def set_status(self, request_id: str, status: str) -> None: ...

    @abstractmethod
    def emergencies(self) -> List[EmergencyRequest]: ...

    @abstractmethod
    def save_emergency(self, request: EmergencyRequest) -> None: ...

    @abstractmethod
    def dispatched_levels(self) -> Dict[str, int]: ...

    @abstractmethod
    def mark_dispatched(self, request_id: str, level: int) -> None: ...


# ---- in-memory ----

class MemoryUnitStore(UnitStore):
    def __init__(self, units: Optional[List[BloodUnit]] = None):
        self._units: Dict[str, BloodUnit] = {u.id: u for u in (units or [])}

    def all(self) -> List[BloodUnit]:
        return [replace(u) for u in self._units.values()]

    def get(self, unit_id: str) -> BloodUnit:
        if unit_id not in self._units:
            raise UnknownRecord(f"Unknown unit: {unit_id}")
        return replace(self._units[unit_id])

    def add(self, unit: BloodUnit) -> None:
        self._units[unit.id] = replace(unit)

    def update(self, unit: BloodUnit) -> None:
        self.get(unit.id)
        self._units[unit.id] = replace(unit)


class MemoryRequestStore(RequestStore):
    def __init__(self, requests: Optional[List[BloodRequest]] = None):
        self._requests: Dict[str, BloodRequest] = {r.id: r for r in (requests or [])}
        self._emergencies: Dict[str, EmergencyRequest] = {}
        self._dispatched: Dict[str, int] = {}

    def all(self) -> List[BloodRequest]:
        return [replace(r) for r in self._requests.values()]

    def add(self, request: BloodRequest) -> None:
        self._requests[request.id] = replace(request)

    def set_status(self, request_id: str, status: str) -> None:
        if request_id not in self._requests:
            raise UnknownRecord(f"Unknown request: {request_id}")
        self._requests[request_id] = replace(self._requests[request_id], status=status)

    def emergencies(self) -> List[EmergencyRequest]:
        return list(self._emergencies.values())

    def save_emergency(self, request: EmergencyRequest) -> None:
        self._emergencies[request.id] = request

    def dispatched_levels(self) -> Dict[str, int]:
        return dict(self._dispatched)

    def mark_dispatched(self, request_id: str, level: int) -> None:
        self._dispatched[request_id] = max(level, self._dispatched.get(request_id, 0))


# ---- sqlite ----

def _unit_from_row(row: dict) -> BloodUnit:
    return BloodUnit(
        id=row["id"], blood_type=row["blood_type"],
        collection_date=from_iso(row["collection_date"]),
        expiration_date=from_iso(row["expiration_date"]),
        test_result=row["test_result"], availability=row["availability"],
        location=row["location"], donor_id=row["donor_id"],
        batch_number=row["batch_number"], volume_ml=row["volume_ml"],
        temperature=row["temperature"],
    )


def _unit_params(unit: BloodUnit) -> dict:
    data = asdict(unit)
    data["collection_date"] = to_iso(unit.collection_date)
    data["expiration_date"] = to_iso(unit.expiration_date)
    return data


class SqliteUnitStore(UnitStore):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def all(self) -> List[BloodUnit]:
        rows = self.conn.execute("SELECT * FROM blood_units ORDER BY rowid").fetchall()
        return [_unit_from_row(r) for r in rows]

    def get(self, unit_id: str) -> BloodUnit:
        row = self.conn.execute("SELECT * FROM blood_units WHERE id = ?", (unit_id,)).fetchone()
        if not row:
            raise UnknownRecord(f"Unknown unit: {unit_id}")
        return _unit_from_row(row)

    def add(self, unit: BloodUnit) -> None:
        with tx(self.conn):
            self.conn.execute(
                "INSERT INTO blood_units(id, blood_type, collection_date, expiration_date, "
                "test_result, availability, location, donor_id, batch_number, volume_ml, temperature) "
                "VALUES(:id, :blood_type, :collection_date, :expiration_date, :test_result, "
                ":availability, :location, :donor_id, :batch_number, :volume_ml, :temperature)",
                _unit_params(unit))

    def update(self, unit: BloodUnit) -> None:
        with tx(self.conn):
            cur = self.conn.execute(
                "UPDATE blood_units SET blood_type=:blood_type, collection_date=:collection_date, "
                "expiration_date=:expiration_date, test_result=:test_result, "
                "availability=:availability, location=:location, donor_id=:donor_id, "
                "batch_number=:batch_number, volume_ml=:volume_ml, temperature=:temperature "
                "WHERE id=:id",
                _unit_params(unit))
            if cur.rowcount == 0:
                raise UnknownRecord(f"Unknown unit: {unit.id}")


_REQUEST_COLS = ["id", "blood_type", "units", "urgency", "hospital", "hospital_type", "address",
                 "distance_km", "requested_date", "reason", "contact_person", "contact_phone",
                 "status", "match_percentage", "state", "district", "city"]


def _request_from_row(row: dict) -> BloodRequest:
    data = {c: row[c] for c in _REQUEST_COLS}
    data["requested_date"] = from_iso(row["requested_date"])
    return BloodRequest(**data)


def _emergency_from_row(row: dict) -> EmergencyRequest:
    return EmergencyRequest(
        id=row["id"], blood_type=row["blood_type"], hospital=row["hospital"],
        created_at=from_iso(row["created_at"]), units_needed=row["units_needed"],
        status=row["status"], paused_at=from_iso(row["paused_at"]),
        resolved_at=from_iso(row["resolved_at"]), manual_levels=row["manual_levels"],
    )


class SqliteRequestStore(RequestStore):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def all(self) -> List[BloodRequest]:
        rows = self.conn.execute("SELECT * FROM blood_requests ORDER BY rowid").fetchall()
        return [_request_from_row(r) for r in rows]

    def add(self, request: BloodRequest) -> None:
        data = asdict(request)
        data["requested_date"] = to_iso(request.requested_date)
        cols = ",".join(_REQUEST_COLS)
        marks = ",".join(f":{c}" for c in _REQUEST_COLS)
        with tx(self.conn):
            self.conn.execute(f"INSERT INTO blood_requests({cols}) VALUES({marks})", data)

    def set_status(self, request_id: str, status: str) -> None:
        with tx(self.conn):
            cur = self.conn.execute("UPDATE blood_requests SET status=? WHERE id=?",
                                    (status, request_id))
            if cur.rowcount == 0:
                raise UnknownRecord(f"Unknown request: {request_id}")

    def emergencies(self) -> List[EmergencyRequest]:
        rows = self.conn.execute("SELECT * FROM emergencies ORDER BY created_at, id").fetchall()
        return [_emergency_from_row(r) for r in rows]

    def save_emergency(self, request: EmergencyRequest) -> None:
        with tx(self.conn):
            self.conn.execute(
                "INSERT INTO emergencies(id, blood_type, hospital, units_needed, created_at, status, "
                "paused_at, resolved_at, manual_levels) VALUES(?,?,?,?,?,?,?,?,?) "
                "ON CONFLICT(id) DO UPDATE SET blood_type=excluded.blood_type, "
                "hospital=excluded.hospital, units_needed=excluded.units_needed, "
                "created_at=excluded.created_at, status=excluded.status, "
                "paused_at=excluded.paused_at, resolved_at=excluded.resolved_at, "
                "manual_levels=excluded.manual_levels",
                (request.id, request.blood_type, request.hospital, request.units_needed,
                 to_iso(request.created_at), request.status, to_iso(request.paused_at),
                 to_iso(request.resolved_at), request.manual_levels))

    def dispatched_levels(self) -> Dict[str, int]:
        rows = self.conn.execute("SELECT id, dispatched_level FROM emergencies").fetchall()
        return {r["id"]: r["dispatched_level"] for r in rows}

    def mark_dispatched(self, request_id: str, level: int) -> None:
        with tx(self.conn):
            self.conn.execute(
                "UPDATE emergencies SET dispatched_level = MAX(dispatched_level, ?) WHERE id = ?",
                (level, request_id))


# ---- alert ledger ----

def load_ledger(conn: sqlite3.Connection, cooldown: Optional[timedelta] = None) -> AlertLedger:
    rows = conn.execute("SELECT blood_type, alert_type, acknowledged_at FROM alert_ledger").fetchall()
    acked = {(r["blood_type"], r["alert_type"]): from_iso(r["acknowledged_at"]) for r in rows}
    return AlertLedger(cooldown=cooldown, acknowledged=acked)


def save_acknowledgement(conn: sqlite3.Connection, blood_type: str, alert_type: str,
                         at: datetime) -> None:
    with tx(conn):
        conn.execute(
            "INSERT INTO alert_ledger(blood_type, alert_type, acknowledged_at) VALUES(?,?,?) "
            "ON CONFLICT(blood_type, alert_type) DO UPDATE SET acknowledged_at=excluded.acknowledged_at",
            (blood_type, alert_type, to_iso(at)))
