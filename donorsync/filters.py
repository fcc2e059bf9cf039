from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from .inventory import BloodUnit, classify_unit

URGENCY_ORDER = {"Critical": 4, "High": 3, "Medium": 2, "Low": 1}


@dataclass
class BloodRequest:
    id: str
    blood_type: str
    units: int
    urgency: str
    hospital: str
    hospital_type: str = "Government"
    address: str = ""
    distance_km: float = 0.0
    requested_date: Optional[datetime] = None
    reason: str = ""
    contact_person: str = ""
    contact_phone: str = ""
    status: str = "Active"
    match_percentage: int = 0
    state: str = ""
    district: str = ""
    city: str = ""


def _contains(term: str, *values: Optional[str]) -> bool:
    return any(term in (v or "").lower() for v in values)


def filter_units(units: Iterable[BloodUnit], now: datetime, search: Optional[str] = None,
                 status: Optional[str] = None, blood_type: Optional[str] = None,
                 location: Optional[str] = None) -> List[BloodUnit]:
    """None (or "all") disables a filter; active filters are ANDed."""
    term = (search or "").strip().lower()
    out = []
    for u in units:
        if term and not _contains(term, u.id, u.donor_id, u.batch_number, u.location):
            continue
        if status not in (None, "all") and classify_unit(u, now) != status:
            continue
        if blood_type not in (None, "all") and u.blood_type != blood_type:
            continue
        if location not in (None, "all") and u.location != location:
            continue
        out.append(u)
    return out


def sort_units(units: Iterable[BloodUnit], key: str) -> List[BloodUnit]:
    units = list(units)
    if key == "expiration":
        return sorted(units, key=lambda u: u.expiration_date)
    if key == "collection":
        return sorted(units, key=lambda u: u.collection_date, reverse=True)
    if key == "blood_type":
        return sorted(units, key=lambda u: u.blood_type)
    return units


def filter_requests(requests: Iterable[BloodRequest], search: Optional[str] = None,
                    blood_type: Optional[str] = None, urgency: Optional[str] = None,
                    hospital_type: Optional[str] = None, state: Optional[str] = None,
                    district: Optional[str] = None, city: Optional[str] = None,
                    max_distance_km: Optional[float] = None) -> List[BloodRequest]:
    term = (search or "").strip().lower()
    equals = [("blood_type", blood_type), ("urgency", urgency), ("hospital_type", hospital_type),
              ("state", state), ("district", district), ("city", city)]
    out = []
    for r in requests:
        if term and not _contains(term, r.hospital, r.reason, r.id, r.address, r.contact_person,
                                  r.state, r.district, r.city):
            continue
        if any(v not in (None, "all") and getattr(r, attr) != v for attr, v in equals):
            continue
        if max_distance_km is not None and r.distance_km > max_distance_km:
            continue
        out.append(r)
    return out


def sort_requests(requests: Iterable[BloodRequest], key: str) -> List[BloodRequest]:
    # sorted() is stable, so equal keys keep their input order
    requests = list(requests)
    if key == "urgency":
        return sorted(requests, key=lambda r: -URGENCY_ORDER.get(r.urgency, 0))
    if key == "distance":
        return sorted(requests, key=lambda r: r.distance_km)
    if key == "compatibility":
        return sorted(requests, key=lambda r: -r.match_percentage)
    if key == "recent":
        return sorted(requests, key=lambda r: r.requested_date or datetime.min, reverse=True)
    return requests
