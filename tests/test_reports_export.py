import csv
import json

from donorsync.alerts import generate_alerts
from donorsync.export import REQUEST_FIELDS, UNIT_FIELDS, export_records
from donorsync.filters import BloodRequest
from donorsync.inventory import compute_levels
from donorsync.reports import export_audit_pdf, export_inventory_pdf
from donorsync.service import intake_unit
from donorsync.store import SqliteUnitStore

from conftest import NOW, make_unit


def test_units_to_csv(tmp_path):
    path = tmp_path / "units.csv"
    units = [make_unit("BU-1", "A+", days=20, location="Refrigerator A1"),
             make_unit("BU-2", "O-", days=3)]
    assert export_records(str(path), units, UNIT_FIELDS) == 2

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["id"] for r in rows] == ["BU-1", "BU-2"]
    assert rows[0]["expiration_date"] == "2024-04-04 12:00:00"
    assert rows[0]["location"] == "Refrigerator A1"


def test_empty_csv_still_has_header(tmp_path):
    path = tmp_path / "empty.csv"
    assert export_records(str(path), [], REQUEST_FIELDS) == 0
    assert path.read_text(encoding="utf-8").strip() == ",".join(REQUEST_FIELDS)


def test_requests_to_json(tmp_path):
    path = tmp_path / "requests.json"
    req = BloodRequest(id="R1", blood_type="B+", units=2, urgency="High",
                       hospital="KEM Hospital", requested_date=NOW)
    export_records(str(path), [req], REQUEST_FIELDS)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == [{
        "id": "R1", "hospital": "KEM Hospital", "blood_type": "B+", "units": 2,
        "urgency": "High", "requested_date": "2024-03-15 12:00:00", "contact_person": "",
        "contact_phone": "", "address": "", "distance_km": 0.0, "status": "Active",
    }]


def test_inventory_pdf(tmp_path):
    units = [make_unit(f"u{i}", "O-") for i in range(8)] + [make_unit("x", "AB-", days=2)]
    levels = compute_levels(units, NOW)
    alerts = generate_alerts(levels, units, NOW)
    path = tmp_path / "inventory.pdf"
    export_inventory_pdf(levels, alerts, str(path), generated_at=NOW)
    assert path.read_bytes().startswith(b"%PDF")


def test_inventory_pdf_without_alerts(tmp_path):
    path = tmp_path / "quiet.pdf"
    export_inventory_pdf(compute_levels([], NOW), [], str(path))
    assert path.read_bytes().startswith(b"%PDF")


def test_audit_pdf(conn, tmp_path):
    intake_unit(conn, SqliteUnitStore(conn), "O+", NOW, location="<cold room>", unit_id="BU-1")
    rows = conn.execute("SELECT * FROM audit_log ORDER BY id").fetchall()
    rows.append({"id": 99, "at": "2024-03-15 12:00:00", "action": "Broken", "details_json": "{oops"})
    path = tmp_path / "audit.pdf"
    export_audit_pdf(rows, str(path))
    assert path.read_bytes().startswith(b"%PDF")
