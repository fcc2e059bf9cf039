import random
import sqlite3
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from .blood_types import ALL_TYPES
from .db import tx
from .filters import BloodRequest
from .inventory import BloodUnit
from .store import SqliteRequestStore, SqliteUnitStore

LOCATIONS = ["Refrigerator A1", "Refrigerator A2", "Refrigerator B1", "Refrigerator B2",
             "Mobile Unit 1", "Mobile Unit 2"]
HOSPITALS = [
    ("AIIMS Delhi", "Government", "Delhi", "New Delhi", "New Delhi"),
    ("Lilavati Hospital", "Private", "Maharashtra", "Mumbai", "Mumbai"),
    ("KEM Hospital", "Medical College", "Maharashtra", "Pune", "Pune"),
    ("Rotary Blood Bank", "Blood Bank", "Karnataka", "Bengaluru Urban", "Bengaluru"),
    ("Apollo Hospital", "Private", "Tamil Nadu", "Chennai", "Chennai"),
]
REASONS = ["Surgery", "Accident", "Thalassemia", "Childbirth", "Cancer treatment", "Dengue"]
URGENCIES = ["Critical", "High", "Medium", "Low"]


def generate_units(now: datetime, rng: Optional[random.Random] = None,
                   batch: str = "") -> List[BloodUnit]:
    rng = rng or random.Random()
    prefix = f"BU-{batch}-" if batch else "BU-"
    units: List[BloodUnit] = []
    for bt in ALL_TYPES:
        for i in range(rng.randint(15, 45)):
            collected = now - timedelta(days=rng.randint(0, 39))
            roll = rng.random()
            test_result = "passed" if roll > 0.05 else ("pending" if rng.random() > 0.5 else "failed")
            units.append(BloodUnit.collected(
                f"{prefix}{bt}-{i:03d}", bt, collected,
                test_result=test_result,
                availability="reserved" if rng.random() < 0.1 else "available",
                location=rng.choice(LOCATIONS),
                donor_id=f"D{rng.randint(0, 9999):04d}",
                batch_number=f"BT{rng.randint(0, 999):03d}",
                temperature=round(rng.uniform(2, 4), 1),
            ))
    return units


def generate_requests(now: datetime, rng: Optional[random.Random] = None,
                      count: int = 20, batch: str = "") -> List[BloodRequest]:
    rng = rng or random.Random()
    prefix = f"REQ-{batch}-" if batch else "REQ-"
    requests = []
    for i in range(count):
        hospital, htype, state, district, city = rng.choice(HOSPITALS)
        requests.append(BloodRequest(
            id=f"{prefix}{i + 1:04d}",
            blood_type=rng.choice(ALL_TYPES),
            units=rng.randint(1, 6),
            urgency=rng.choice(URGENCIES),
            hospital=hospital, hospital_type=htype,
            address=f"{rng.randint(1, 200)} Main Road, {city}",
            distance_km=round(rng.uniform(0.5, 60), 1),
            requested_date=now - timedelta(hours=rng.randint(0, 72)),
            reason=rng.choice(REASONS),
            contact_person=f"Dr. Contact {i + 1}",
            contact_phone=f"+91 98765 {rng.randint(10000, 99999)}",
            match_percentage=rng.randint(60, 100),
            state=state, district=district, city=city,
        ))
    return requests


def seed(conn: sqlite3.Connection, now: datetime, seed_value: Optional[int] = None) -> int:
    """Add one demo batch. Ids carry a fresh batch tag so repeated seeding appends."""
    rng = random.Random(seed_value)
    batch = uuid.uuid4().hex[:6].upper()
    units = SqliteUnitStore(conn)
    requests = SqliteRequestStore(conn)
    generated = generate_units(now, rng, batch)
    with tx(conn):
        for u in generated:
            units.add(u)
        for r in generate_requests(now, rng, batch=batch):
            requests.add(r)
    return len(generated)
