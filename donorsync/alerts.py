import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .blood_types import ALL_TYPES
from .inventory import EXPIRED, BloodUnit, InventoryLevel, classify_unit

logger = logging.getLogger(__name__)

LOW_STOCK = "low-stock"
CRITICAL_STOCK = "critical-stock"
EXPIRING_SOON = "expiring-soon"
EXPIRED_UNITS = "expired"
ALERT_TYPES = (LOW_STOCK, CRITICAL_STOCK, EXPIRING_SOON, EXPIRED_UNITS)


@dataclass
class AlertNotification:
    id: str
    type: str
    blood_type: str
    message: str
    severity: str
    timestamp: datetime
    acknowledged: bool = False


class AlertLedger:
    """
    Last acknowledgement per (blood_type, alert_type).

    With ``cooldown=None`` nothing is ever suppressed and every recomputation
    re-emits the full alert set. With a timedelta, an acknowledged alert stays
    quiet until the cooldown has elapsed since its acknowledgement.
    """

    def __init__(self, cooldown: Optional[timedelta] = None,
                 acknowledged: Optional[Dict[Tuple[str, str], datetime]] = None):
        self.cooldown = cooldown
        self.acknowledged: Dict[Tuple[str, str], datetime] = dict(acknowledged or {})

    def acknowledge(self, blood_type: str, alert_type: str, at: datetime) -> None:
        self.acknowledged[(blood_type, alert_type)] = at

    def is_suppressed(self, blood_type: str, alert_type: str, now: datetime) -> bool:
        if self.cooldown is None:
            return False
        at = self.acknowledged.get((blood_type, alert_type))
        if at is None:
            return False
        return now - at < self.cooldown


def _alert(kind: str, blood_type: str, message: str, severity: str, now: datetime) -> AlertNotification:
    stamp = int(now.timestamp() * 1000)
    return AlertNotification(id=f"{kind}-{blood_type}-{stamp}", type=kind, blood_type=blood_type,
                             message=message, severity=severity, timestamp=now)


def generate_alerts(levels: Dict[str, InventoryLevel], units: Iterable[BloodUnit],
                    now: datetime, ledger: Optional[AlertLedger] = None) -> List[AlertNotification]:
    alerts: List[AlertNotification] = []
    for bt in ALL_TYPES:
        level = levels.get(bt)
        if level is None:
            continue
        if level.current_stock <= level.critical_level:
            alerts.append(_alert(
                CRITICAL_STOCK, bt,
                f"CRITICAL: Only {level.current_stock} units of {bt} remaining "
                f"(minimum: {level.critical_level})",
                "high", now))
        elif level.current_stock <= level.minimum_required:
            alerts.append(_alert(
                LOW_STOCK, bt,
                f"Low stock: {level.current_stock} units of {bt} (minimum: {level.minimum_required})",
                "medium", now))
        if level.units_expiring_soon > 0:
            alerts.append(_alert(
                EXPIRING_SOON, bt,
                f"{level.units_expiring_soon} units of {bt} expiring within 5 days",
                "high" if level.units_expiring_soon > 5 else "medium", now))

    expired: Dict[str, int] = {}
    for u in units:
        if u.availability != "used" and classify_unit(u, now) == EXPIRED:
            expired[u.blood_type] = expired.get(u.blood_type, 0) + 1
    for bt, count in expired.items():
        alerts.append(_alert(EXPIRED_UNITS, bt,
                             f"{count} units of {bt} have expired and need removal",
                             "high", now))

    if ledger is not None:
        kept = [a for a in alerts if not ledger.is_suppressed(a.blood_type, a.type, now)]
        if len(kept) != len(alerts):
            logger.debug("suppressed %d acknowledged alerts", len(alerts) - len(kept))
        alerts = kept
    return alerts
