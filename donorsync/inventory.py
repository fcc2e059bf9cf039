import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from .blood_types import ALL_TYPES

SHELF_LIFE_DAYS = 42
STANDARD_VOLUME_ML = 450
UNIT_VALUE = 200

# shelf-life states, freshest first
FRESH = "fresh"
GOOD = "good"
EXPIRING_SOON = "expiring-soon"
CRITICAL = "critical"
EXPIRED = "expired"
UNIT_STATES = [FRESH, GOOD, EXPIRING_SOON, CRITICAL, EXPIRED]

TEST_RESULTS = ("pending", "passed", "failed")
AVAILABILITY = ("available", "reserved", "used")


@dataclass
class BloodUnit:
    id: str
    blood_type: str
    collection_date: datetime
    expiration_date: datetime
    test_result: str = "pending"
    availability: str = "available"
    location: str = ""
    donor_id: Optional[str] = None
    batch_number: Optional[str] = None
    volume_ml: int = STANDARD_VOLUME_ML
    temperature: Optional[float] = None

    @classmethod
    def collected(cls, id: str, blood_type: str, collection_date: datetime, **kwargs) -> "BloodUnit":
        return cls(id=id, blood_type=blood_type, collection_date=collection_date,
                   expiration_date=collection_date + timedelta(days=SHELF_LIFE_DAYS), **kwargs)


@dataclass(frozen=True)
class Thresholds:
    minimum_required: int
    critical_level: int
    optimal_level: int


# Rare and Rh-negative types run on tighter margins.
THRESHOLDS: Dict[str, Thresholds] = {
    "O-": Thresholds(minimum_required=30, critical_level=15, optimal_level=60),
    "O+": Thresholds(minimum_required=25, critical_level=12, optimal_level=50),
}
RH_NEGATIVE_THRESHOLDS = Thresholds(minimum_required=15, critical_level=8, optimal_level=30)
RH_POSITIVE_THRESHOLDS = Thresholds(minimum_required=20, critical_level=10, optimal_level=40)


def thresholds_for(blood_type: str) -> Thresholds:
    if blood_type in THRESHOLDS:
        return THRESHOLDS[blood_type]
    if blood_type.endswith("-"):
        return RH_NEGATIVE_THRESHOLDS
    return RH_POSITIVE_THRESHOLDS


@dataclass
class InventoryLevel:
    blood_type: str
    current_stock: int
    minimum_required: int
    optimal_level: int
    critical_level: int
    units_expiring_soon: int
    total_volume_ml: int = 0


def days_left(unit: BloodUnit, now: datetime) -> int:
    seconds = (unit.expiration_date - now).total_seconds()
    return math.ceil(seconds / 86400)


def classify_unit(unit: BloodUnit, now: datetime) -> str:
    left = days_left(unit, now)
    if left <= 0:
        return EXPIRED
    if left <= 2:
        return CRITICAL
    if left <= 5:
        return EXPIRING_SOON
    if left <= 14:
        return GOOD
    return FRESH


def compute_levels(units: Iterable[BloodUnit], now: datetime) -> Dict[str, InventoryLevel]:
    """
    Per-type stock from a unit snapshot. Only passed, unexpired units count;
    used units are gone and reserved ones are not stock but can still expire.
    """
    units = list(units)
    levels: Dict[str, InventoryLevel] = {}
    for bt in ALL_TYPES:
        usable = [u for u in units
                  if u.blood_type == bt and u.test_result == "passed"
                  and u.availability != "used" and classify_unit(u, now) != EXPIRED]
        available = [u for u in usable if u.availability == "available"]
        expiring = [u for u in usable if classify_unit(u, now) in (EXPIRING_SOON, CRITICAL)]
        t = thresholds_for(bt)
        levels[bt] = InventoryLevel(
            blood_type=bt,
            current_stock=len(available),
            minimum_required=t.minimum_required,
            optimal_level=t.optimal_level,
            critical_level=t.critical_level,
            units_expiring_soon=len(expiring),
            total_volume_ml=sum(u.volume_ml for u in available),
        )
    return levels


def stock_status(level: InventoryLevel) -> str:
    if level.current_stock <= level.critical_level:
        return "critical"
    if level.current_stock <= level.minimum_required:
        return "low"
    if level.current_stock >= level.optimal_level:
        return "optimal"
    return "normal"


def stock_percentage(level: InventoryLevel) -> float:
    if level.optimal_level <= 0:
        return 100.0
    return min(level.current_stock / level.optimal_level * 100, 100.0)


@dataclass
class ExpirationStats:
    total_units: int = 0
    by_state: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in UNIT_STATES})
    total_value: int = 0
    potential_waste: int = 0


def expiration_stats(units: Iterable[BloodUnit], now: datetime) -> ExpirationStats:
    stats = ExpirationStats()
    for u in units:
        if u.test_result != "passed":
            continue
        state = classify_unit(u, now)
        stats.total_units += 1
        stats.by_state[state] += 1
        if state in (CRITICAL, EXPIRED):
            stats.potential_waste += UNIT_VALUE
    stats.total_value = stats.total_units * UNIT_VALUE
    return stats
