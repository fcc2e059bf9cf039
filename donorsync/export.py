import csv
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Dict, Iterable, List

UNIT_FIELDS = ["id", "blood_type", "collection_date", "expiration_date", "test_result",
               "availability", "location", "donor_id", "batch_number", "volume_ml", "temperature"]
REQUEST_FIELDS = ["id", "hospital", "blood_type", "units", "urgency", "requested_date",
                  "contact_person", "contact_phone", "address", "distance_km", "status"]


def to_rows(records: Iterable, fields: List[str]) -> List[Dict]:
    rows = []
    for rec in records:
        data = asdict(rec) if is_dataclass(rec) else dict(rec)
        row = {}
        for f in fields:
            value = data.get(f)
            row[f] = value.isoformat(sep=" ") if isinstance(value, datetime) else value
        rows.append(row)
    return rows


def to_csv(path: str, rows: List[Dict], fields: List[str]):
    # header is written even when there are no rows
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fields)
        writer.writeheader()
        writer.writerows(rows)


def to_json(path: str, rows: List[Dict]):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(rows, f, ensure_ascii=False, indent=2)


def export_records(path: str, records: Iterable, fields: List[str]) -> int:
    rows = to_rows(records, fields)
    if path.lower().endswith(".json"):
        to_json(path, rows)
    else:
        to_csv(path, rows, fields)
    return len(rows)
