import logging
from datetime import timedelta

from donorsync.monitor import InventoryMonitor
from donorsync.service import open_emergency
from donorsync.store import MemoryUnitStore, SqliteRequestStore

from conftest import NOW, make_unit


def _monitor(conn, units=None, **kwargs):
    return InventoryMonitor(conn, MemoryUnitStore(units or []), SqliteRequestStore(conn),
                            interval_seconds=3600, clock=lambda: NOW, **kwargs)


def test_tick_recomputes_and_delivers_escalations(conn):
    sent, seen = [], []
    monitor = _monitor(conn, [make_unit(f"u{i}", "O-") for i in range(5)],
                       send=lambda topic, payload: sent.append(payload["level"]),
                       on_snapshot=seen.append)
    open_emergency(conn, monitor.requests, "O-", "AIIMS Delhi", NOW)

    snap = monitor.tick(NOW + timedelta(minutes=31))
    assert snap.counts()["O-"] == 5
    assert sent == [1, 2]
    assert seen == [snap]
    assert monitor.last is snap

    monitor.tick(NOW + timedelta(minutes=40))
    assert sent == [1, 2]


def test_tick_uses_clock_by_default(conn):
    assert _monitor(conn).tick().taken_at == NOW


def test_failed_job_is_logged_not_raised(conn, caplog):
    monitor = _monitor(conn)

    def boom():
        raise RuntimeError("store offline")

    monitor.units.all = boom
    with caplog.at_level(logging.ERROR, logger="donorsync.monitor"):
        monitor._run_job()
    assert "inventory recheck failed" in caplog.text


def test_start_stop_toggle(conn):
    monitor = _monitor(conn)
    assert not monitor.running
    monitor.start()
    try:
        assert monitor.running
        monitor.start()
        assert monitor.scheduler.get_job("inventory_recheck_job") is not None
    finally:
        monitor.stop()
    assert not monitor.running
    assert monitor.toggle() is True
    assert monitor.toggle() is False
