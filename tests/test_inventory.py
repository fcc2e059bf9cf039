from datetime import timedelta

import pytest

from donorsync.inventory import (CRITICAL, EXPIRED, EXPIRING_SOON, FRESH, GOOD, UNIT_STATES,
                                 BloodUnit, InventoryLevel, classify_unit, compute_levels,
                                 days_left, expiration_stats, stock_percentage, stock_status,
                                 thresholds_for)

from conftest import make_unit


def test_collected_sets_42_day_shelf_life(now):
    unit = BloodUnit.collected("u1", "A+", now)
    assert unit.expiration_date - unit.collection_date == timedelta(days=42)


def test_unit_collected_42_days_ago_is_expired(now):
    unit = BloodUnit.collected("u1", "A+", now - timedelta(days=42))
    assert days_left(unit, now) == 0
    assert classify_unit(unit, now) == EXPIRED


@pytest.mark.parametrize("days,state", [
    (-3, EXPIRED), (0, EXPIRED), (1, CRITICAL), (2, CRITICAL), (3, EXPIRING_SOON),
    (5, EXPIRING_SOON), (6, GOOD), (14, GOOD), (15, FRESH), (42, FRESH),
])
def test_classification_boundaries(now, days, state):
    assert classify_unit(make_unit("u", days=days), now) == state


def test_partial_day_rounds_up(now):
    unit = make_unit("u", days=0)
    unit.expiration_date = now + timedelta(hours=1)
    assert days_left(unit, now) == 1
    assert classify_unit(unit, now) == CRITICAL


def test_malformed_dates_classify_as_expired(now):
    unit = BloodUnit("u", "O+", collection_date=now, expiration_date=now - timedelta(days=3))
    assert classify_unit(unit, now) == EXPIRED


def test_status_never_moves_backward(now):
    unit = make_unit("u", days=20)
    rank = {state: i for i, state in enumerate(UNIT_STATES)}
    previous = rank[classify_unit(unit, now)]
    t = now
    for _ in range(25 * 24):
        t += timedelta(hours=1)
        current = rank[classify_unit(unit, t)]
        assert current >= previous
        previous = current
    assert classify_unit(unit, t) == EXPIRED


def test_threshold_table():
    t = thresholds_for("O-")
    assert (t.minimum_required, t.critical_level, t.optimal_level) == (30, 15, 60)
    t = thresholds_for("O+")
    assert (t.minimum_required, t.critical_level, t.optimal_level) == (25, 12, 50)
    for bt in ("A-", "B-", "AB-"):
        t = thresholds_for(bt)
        assert (t.minimum_required, t.critical_level, t.optimal_level) == (15, 8, 30)
    for bt in ("A+", "B+", "AB+"):
        t = thresholds_for(bt)
        assert (t.minimum_required, t.critical_level, t.optimal_level) == (20, 10, 40)


def test_levels_cover_every_type(now):
    levels = compute_levels([], now)
    assert list(levels) == ["O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"]
    assert all(lvl.current_stock == 0 for lvl in levels.values())


def test_current_stock_counts_only_available_passed_unexpired_units_of_type(now):
    units = [
        make_unit("a1", "A+"),
        make_unit("a2", "A+"),
        make_unit("a3", "A+", test_result="pending"),
        make_unit("a4", "A+", test_result="failed"),
        make_unit("a5", "A+", availability="reserved"),
        make_unit("a6", "A+", availability="used"),
        make_unit("a7", "A+", days=0),
        make_unit("b1", "B+"),
    ]
    levels = compute_levels(units, now)
    assert levels["A+"].current_stock == 2
    assert levels["B+"].current_stock == 1
    assert levels["A+"].total_volume_ml == 900


def test_units_expiring_soon_counts_critical_and_expiring(now):
    units = [
        make_unit("u1", "B-", days=1),
        make_unit("u2", "B-", days=4),
        make_unit("u3", "B-", days=5, availability="reserved"),
        make_unit("u4", "B-", days=6),
        make_unit("u5", "B-", days=0),
        make_unit("u6", "B-", days=2, test_result="pending"),
    ]
    level = compute_levels(units, now)["B-"]
    assert level.units_expiring_soon == 3
    assert level.current_stock == 3


def _level(stock, bt="A+"):
    t = thresholds_for(bt)
    return InventoryLevel(bt, stock, t.minimum_required, t.optimal_level, t.critical_level, 0)


@pytest.mark.parametrize("stock,status", [(0, "critical"), (10, "critical"), (11, "low"),
                                          (20, "low"), (21, "normal"), (40, "optimal")])
def test_stock_status(stock, status):
    assert stock_status(_level(stock)) == status


def test_stock_percentage_is_capped():
    assert stock_percentage(_level(20)) == 50
    assert stock_percentage(_level(90)) == 100


def test_expiration_stats(now):
    units = [make_unit("u1", days=30), make_unit("u2", days=1), make_unit("u3", days=0),
             make_unit("u4", days=10, test_result="failed")]
    stats = expiration_stats(units, now)
    assert stats.total_units == 3
    assert stats.by_state[FRESH] == 1
    assert stats.by_state[CRITICAL] == 1
    assert stats.by_state[EXPIRED] == 1
    assert stats.total_value == 600
    assert stats.potential_waste == 400
