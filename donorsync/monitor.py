import logging
import sqlite3
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .alerts import AlertLedger
from .service import Snapshot, dispatch_escalations, drain_outbox, log_notifier, snapshot
from .store import RequestStore, UnitStore

logger = logging.getLogger(__name__)

JOB_ID = "inventory_recheck_job"


class InventoryMonitor:
    """
    Re-derives unit states, levels, alerts and escalation levels on a fixed
    interval. Each tick is a full recomputation from the stores, so
    overlapping or missed ticks only repeat or delay the same result.
    """

    def __init__(self, conn: sqlite3.Connection, units: UnitStore, requests: RequestStore,
                 ledger: Optional[AlertLedger] = None, interval_seconds: int = 60,
                 step_minutes: int = 30,
                 send: Callable[[str, dict], None] = log_notifier,
                 on_snapshot: Optional[Callable[[Snapshot], None]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.conn = conn
        self.units = units
        self.requests = requests
        self.ledger = ledger
        self.interval_seconds = interval_seconds
        self.step_minutes = step_minutes
        self.send = send
        self.on_snapshot = on_snapshot
        self.clock = clock
        self.last: Optional[Snapshot] = None
        self.scheduler = BackgroundScheduler()

    def tick(self, now: Optional[datetime] = None) -> Snapshot:
        now = now or self.clock()
        snap = snapshot(self.units, now, self.ledger)
        for alert in snap.alerts:
            if alert.severity == "high":
                logger.warning("%s [%s]", alert.message, alert.blood_type)
        dispatch_escalations(self.conn, self.requests, now, self.step_minutes)
        drain_outbox(self.conn, self.send, now)
        self.last = snap
        if self.on_snapshot is not None:
            self.on_snapshot(snap)
        return snap

    def _run_job(self):
        try:
            self.tick()
        except Exception:
            logger.exception("inventory recheck failed")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self):
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            func=self._run_job,
            trigger="interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("inventory monitor started (every %ss)", self.interval_seconds)

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.scheduler = BackgroundScheduler()
            logger.info("inventory monitor stopped")

    def toggle(self) -> bool:
        if self.running:
            self.stop()
        else:
            self.start()
        return self.running
