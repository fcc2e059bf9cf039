from datetime import timedelta

from donorsync.alerts import (CRITICAL_STOCK, EXPIRED_UNITS, EXPIRING_SOON, LOW_STOCK, AlertLedger,
                              generate_alerts)
from donorsync.inventory import compute_levels

from conftest import make_unit


def _stocked(bt, n, prefix=None, **kwargs):
    return [make_unit(f"{prefix or bt}-{i}", bt, **kwargs) for i in range(n)]


def _full_stock():
    # every type comfortably above its minimum
    units = []
    for bt in ["O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"]:
        units += _stocked(bt, 45)
    return units


def _alerts_for(alerts, bt):
    return [a for a in alerts if a.blood_type == bt]


def test_eight_o_negative_units_raise_one_critical_alert(now):
    units = _stocked("O-", 8)
    alerts = generate_alerts(compute_levels(units, now), units, now)
    o_neg = _alerts_for(alerts, "O-")
    assert [a.type for a in o_neg] == [CRITICAL_STOCK]
    assert o_neg[0].severity == "high"
    assert o_neg[0].message == "CRITICAL: Only 8 units of O- remaining (minimum: 15)"


def test_low_stock_between_critical_and_minimum(now):
    units = [u for u in _full_stock() if u.blood_type != "A+"] + _stocked("A+", 15)
    alerts = generate_alerts(compute_levels(units, now), units, now)
    assert [(a.type, a.severity) for a in alerts] == [(LOW_STOCK, "medium")]
    assert alerts[0].blood_type == "A+"


def test_stock_alerts_never_both_for_one_type(now):
    for n in range(0, 40, 3):
        units = _stocked("O+", n)
        alerts = generate_alerts(compute_levels(units, now), units, now)
        kinds = {a.type for a in alerts if a.blood_type == "O+"}
        assert not {LOW_STOCK, CRITICAL_STOCK} <= kinds


def test_no_alerts_when_everything_is_healthy(now):
    units = _full_stock()
    assert generate_alerts(compute_levels(units, now), units, now) == []


def test_expiring_soon_is_independent_of_stock_alerts(now):
    units = _stocked("B-", 3, days=4)
    alerts = _alerts_for(generate_alerts(compute_levels(units, now), units, now), "B-")
    assert [a.type for a in alerts] == [CRITICAL_STOCK, EXPIRING_SOON]
    assert alerts[1].severity == "medium"
    assert alerts[1].message == "3 units of B- expiring within 5 days"


def test_expiring_soon_severity_high_above_five(now):
    units = _full_stock() + _stocked("AB+", 6, prefix="exp", days=2)
    alerts = generate_alerts(compute_levels(units, now), units, now)
    assert [(a.type, a.severity) for a in alerts] == [(EXPIRING_SOON, "high")]


def test_expired_units_aggregate_per_type(now):
    units = (_full_stock() + _stocked("A-", 3, prefix="old-a", days=0)
             + _stocked("B+", 1, prefix="old-b", days=-5, test_result="failed")
             + _stocked("B+", 2, prefix="gone-b", days=-5, availability="used"))
    alerts = generate_alerts(compute_levels(units, now), units, now)
    expired = {a.blood_type: a for a in alerts if a.type == EXPIRED_UNITS}
    assert set(expired) == {"A-", "B+"}
    assert expired["A-"].message == "3 units of A- have expired and need removal"
    assert expired["B+"].message == "1 units of B+ have expired and need removal"
    assert all(a.severity == "high" for a in expired.values())


def test_every_call_produces_fresh_unacknowledged_alerts(now):
    units = _stocked("O-", 2)
    levels = compute_levels(units, now)
    first = generate_alerts(levels, units, now)
    first[0].acknowledged = True
    second = generate_alerts(levels, units, now + timedelta(minutes=1))
    assert all(not a.acknowledged for a in second)
    assert len(first) == len(second)


def test_ledger_without_cooldown_suppresses_nothing(now):
    units = _stocked("O-", 2)
    ledger = AlertLedger()
    ledger.acknowledge("O-", CRITICAL_STOCK, now)
    alerts = generate_alerts(compute_levels(units, now), units, now, ledger)
    assert any(a.blood_type == "O-" and a.type == CRITICAL_STOCK for a in alerts)


def test_ledger_cooldown_suppresses_until_window_passes(now):
    units = _stocked("O-", 2)
    levels = compute_levels(units, now)
    ledger = AlertLedger(cooldown=timedelta(hours=1))
    ledger.acknowledge("O-", CRITICAL_STOCK, now)

    soon = generate_alerts(levels, units, now + timedelta(minutes=30), ledger)
    assert not any(a.blood_type == "O-" and a.type == CRITICAL_STOCK for a in soon)
    # other types are unaffected
    assert any(a.blood_type == "O+" and a.type == CRITICAL_STOCK for a in soon)

    later = generate_alerts(levels, units, now + timedelta(hours=2), ledger)
    assert any(a.blood_type == "O-" and a.type == CRITICAL_STOCK for a in later)
