import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .alerts import ALERT_TYPES, AlertLedger, AlertNotification, generate_alerts
from .blood_types import require
from .db import to_iso, tx
from .escalation import EmergencyRequest, escalation_level, pending_transitions, rule_for
from .inventory import (AVAILABILITY, TEST_RESULTS, BloodUnit, InventoryLevel,
                        compute_levels)
from .store import RequestStore, UnitStore, UnknownRecord, save_acknowledgement

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    pass


def log_action(conn: sqlite3.Connection, actor: str, action: str, entity: str,
               entity_id: Optional[str], details: dict, at: Optional[datetime] = None) -> None:
    """
    Store audit details as plain JSON text (avoid relying on SQLite json() func).
    """
    conn.execute(
        "INSERT INTO audit_log(at, actor, action, entity, entity_id, details_json) VALUES(?,?,?,?,?,?)",
        (to_iso(at or datetime.now()), actor, action, entity, entity_id,
         json.dumps(details, ensure_ascii=False, default=str))
    )


# ----- Units -----

def intake_unit(conn: sqlite3.Connection, store: UnitStore, blood_type: str,
                collected_at: datetime, location: str = "", donor_id: Optional[str] = None,
                test_result: str = "pending", unit_id: Optional[str] = None,
                actor: str = "system", **extra) -> BloodUnit:
    bt = require(blood_type)
    if test_result not in TEST_RESULTS:
        raise ValueError(f"Invalid test result: {test_result}")
    # stored timestamps have second precision
    collected_at = collected_at.replace(microsecond=0)
    unit = BloodUnit.collected(unit_id or f"BU-{uuid.uuid4().hex[:10].upper()}", bt, collected_at,
                               test_result=test_result, location=location, donor_id=donor_id, **extra)
    with tx(conn):
        store.add(unit)
        log_action(conn, actor, "Intake Unit", "blood_units", unit.id, {
            "blood_type": bt, "collection_date": collected_at, "location": location,
            "donor_id": donor_id,
        })
    logger.info("unit %s (%s) taken in at %s", unit.id, bt, location or "-")
    return unit


def set_availability(conn: sqlite3.Connection, store: UnitStore, unit_id: str,
                     availability: str, actor: str = "system") -> BloodUnit:
    if availability not in AVAILABILITY:
        raise ValueError(f"Invalid availability: {availability}")
    with tx(conn):
        unit = store.get(unit_id)
        if unit.availability == "used" and availability != "used":
            raise InvalidTransition(f"Unit {unit_id} was already used")
        updated = replace(unit, availability=availability)
        store.update(updated)
        log_action(conn, actor, "Set Availability", "blood_units", unit_id, {
            "before": unit.availability, "after": availability,
        })
    return updated


def record_test_result(conn: sqlite3.Connection, store: UnitStore, unit_id: str,
                       result: str, actor: str = "system") -> BloodUnit:
    if result not in TEST_RESULTS:
        raise ValueError(f"Invalid test result: {result}")
    with tx(conn):
        unit = store.get(unit_id)
        updated = replace(unit, test_result=result)
        store.update(updated)
        log_action(conn, actor, "Test Result", "blood_units", unit_id, {
            "before": unit.test_result, "after": result,
        })
    return updated


# ----- Snapshot -----

@dataclass
class Snapshot:
    taken_at: datetime
    units: List[BloodUnit]
    levels: Dict[str, InventoryLevel]
    alerts: List[AlertNotification]

    def counts(self) -> Dict[str, int]:
        return {bt: lvl.current_stock for bt, lvl in self.levels.items()}


def snapshot(store: UnitStore, now: datetime, ledger: Optional[AlertLedger] = None) -> Snapshot:
    units = store.all()
    levels = compute_levels(units, now)
    alerts = generate_alerts(levels, units, now, ledger)
    high = sum(1 for a in alerts if a.severity == "high")
    logger.debug("snapshot: %d units, %d alerts (%d high)", len(units), len(alerts), high)
    return Snapshot(taken_at=now, units=units, levels=levels, alerts=alerts)


def acknowledge_alert(conn: sqlite3.Connection, ledger: AlertLedger, blood_type: str,
                      alert_type: str, now: datetime, actor: str = "system") -> None:
    bt = require(blood_type)
    if alert_type not in ALERT_TYPES:
        raise ValueError(f"Invalid alert type: {alert_type}")
    with tx(conn):
        save_acknowledgement(conn, bt, alert_type, now)
        log_action(conn, actor, "Acknowledge Alert", "alert_ledger", f"{bt}/{alert_type}", {}, at=now)
    ledger.acknowledge(bt, alert_type, now)


# ----- Emergencies -----

def open_emergency(conn: sqlite3.Connection, store: RequestStore, blood_type: str,
                   hospital: str, now: datetime, units_needed: int = 1,
                   actor: str = "system") -> EmergencyRequest:
    bt = require(blood_type)
    req = EmergencyRequest(id=f"EM-{uuid.uuid4().hex[:8].upper()}", blood_type=bt,
                           hospital=hospital, created_at=now, units_needed=units_needed)
    with tx(conn):
        store.save_emergency(req)
        log_action(conn, actor, "Open Emergency", "emergencies", req.id, {
            "blood_type": bt, "hospital": hospital, "units_needed": units_needed,
        }, at=now)
    return req


def update_emergency(conn: sqlite3.Connection, store: RequestStore, emergency_id: str,
                     change: Callable[[EmergencyRequest, datetime], EmergencyRequest],
                     now: datetime, action: str, actor: str = "system",
                     step_minutes: int = 30) -> EmergencyRequest:
    with tx(conn):
        current = next((em for em in store.emergencies() if em.id == emergency_id), None)
        if current is None:
            raise UnknownRecord(f"Unknown emergency: {emergency_id}")
        updated = change(current, now)
        store.save_emergency(updated)
        log_action(conn, actor, action, "emergencies", emergency_id, {
            "before": {"status": current.status,
                       "level": escalation_level(current, now, step_minutes)},
            "after": {"status": updated.status,
                      "level": escalation_level(updated, now, step_minutes)},
        }, at=now)
    return updated


def dispatch_escalations(conn: sqlite3.Connection, store: RequestStore, now: datetime,
                         step_minutes: int = 30) -> int:
    """Queue one outbox message per level reached since the last dispatch."""
    transitions = pending_transitions(store.emergencies(), store.dispatched_levels(), now,
                                      step_minutes)
    for req, level in transitions:
        rule = rule_for(level)
        payload = {
            "request_id": req.id, "blood_type": req.blood_type, "hospital": req.hospital,
            "units_needed": req.units_needed, "level": level,
            "rule": rule.name if rule else None,
            "contact_groups": list(rule.contact_groups) if rule else [],
        }
        with tx(conn):
            conn.execute("INSERT INTO outbox(created_at, topic, payload_json) VALUES(?,?,?)",
                         (to_iso(now), "emergency.escalated", json.dumps(payload)))
            store.mark_dispatched(req.id, level)
            log_action(conn, "scheduler", "Escalate", "emergencies", req.id, {"level": level}, at=now)
        logger.warning("emergency %s (%s at %s) escalated to level %d",
                       req.id, req.blood_type, req.hospital, level)
    return len(transitions)


def drain_outbox(conn: sqlite3.Connection, send: Callable[[str, dict], None],
                 now: Optional[datetime] = None, limit: int = 100) -> int:
    """
    Deliver pending outbox rows in order. A row is marked sent only after
    ``send`` returns, so a crash between the two re-delivers it.
    """
    rows = conn.execute(
        "SELECT id, topic, payload_json FROM outbox WHERE sent_at IS NULL ORDER BY id LIMIT ?",
        (limit,)).fetchall()
    delivered = 0
    for row in rows:
        try:
            send(row["topic"], json.loads(row["payload_json"]))
        except Exception as e:
            logger.error("outbox message %s failed: %s", row["id"], e)
            conn.execute("UPDATE outbox SET attempts = attempts + 1, last_error = ? WHERE id = ?",
                         (str(e), row["id"]))
            continue
        conn.execute("UPDATE outbox SET attempts = attempts + 1, sent_at = ?, last_error = NULL "
                     "WHERE id = ?", (to_iso(now or datetime.now()), row["id"]))
        delivered += 1
    return delivered


def log_notifier(topic: str, payload: dict) -> None:
    logger.info("notify %s: %s", topic, payload)
