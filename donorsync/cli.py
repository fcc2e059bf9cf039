import argparse
import signal
import sys
import threading
from datetime import datetime
from pathlib import Path

from .blood_types import ALL_TYPES
from .compat import check_compatibility, compatible_donors_for, compatible_recipients_for
from .config import configure_logging, load_settings
from .db import get_conn
from .demo import seed
from .export import REQUEST_FIELDS, UNIT_FIELDS, export_records
from .inventory import stock_status
from .migrate_sqlite import ensure_schema
from .monitor import InventoryMonitor
from .reports import export_inventory_pdf
from .service import acknowledge_alert, snapshot
from .store import SqliteRequestStore, SqliteUnitStore, load_ledger


def _matrix() -> str:
    lines = ["donor\\recip " + " ".join(f"{r:>4}" for r in ALL_TYPES)]
    for d in ALL_TYPES:
        cells = ["  ok" if check_compatibility(d, r).can_donate else "   -" for r in ALL_TYPES]
        lines.append(f"{d:>11} " + " ".join(cells))
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="donorsync")
    ap.add_argument("--db", default=None)
    ap.add_argument("--env-file", default=None)
    ap.add_argument("--log-level", default=None)
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate")
    p = sub.add_parser("seed-demo")
    p.add_argument("--seed", type=int, default=None)

    p = sub.add_parser("check")
    p.add_argument("donor")
    p.add_argument("recipient")

    p = sub.add_parser("donors-for")
    p.add_argument("recipient")
    p = sub.add_parser("recipients-for")
    p.add_argument("donor")

    sub.add_parser("matrix")
    sub.add_parser("levels")
    sub.add_parser("alerts")

    p = sub.add_parser("ack")
    p.add_argument("blood_type")
    p.add_argument("alert_type")

    p = sub.add_parser("report")
    p.add_argument("path")

    p = sub.add_parser("export")
    p.add_argument("what", choices=["units", "requests"])
    p.add_argument("path")

    p = sub.add_parser("watch")
    p.add_argument("--interval", type=int, default=None)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(env_file=args.env_file, db_path=args.db, log_level=args.log_level,
                             refresh_seconds=getattr(args, "interval", None))
    configure_logging(settings.log_level)

    if args.command == "check":
        res = check_compatibility(args.donor, args.recipient)
        verdict = "Compatible" if res.can_donate else "Incompatible"
        print(f"{args.donor} -> {args.recipient}: {verdict} ({res.reason})")
        return 0 if res.can_donate else 1
    if args.command == "donors-for":
        print(", ".join(compatible_donors_for(args.recipient)) or "-")
        return 0
    if args.command == "recipients-for":
        print(", ".join(compatible_recipients_for(args.donor)) or "-")
        return 0
    if args.command == "matrix":
        print(_matrix())
        return 0

    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    with get_conn(settings.db_path) as conn:
        ensure_schema(conn)
        units = SqliteUnitStore(conn)
        requests = SqliteRequestStore(conn)
        ledger = load_ledger(conn, settings.alert_cooldown)
        now = datetime.now()

        if args.command == "migrate":
            print("Migration complete.")
        elif args.command == "seed-demo":
            n = seed(conn, now, args.seed)
            print(f"Seeded {n} demo units.")
        elif args.command == "levels":
            snap = snapshot(units, now, ledger)
            print(f"{'type':<5}{'stock':>7}{'crit':>6}{'min':>6}{'opt':>6}{'exp.soon':>10}  status")
            for lvl in snap.levels.values():
                print(f"{lvl.blood_type:<5}{lvl.current_stock:>7}{lvl.critical_level:>6}"
                      f"{lvl.minimum_required:>6}{lvl.optimal_level:>6}"
                      f"{lvl.units_expiring_soon:>10}  {stock_status(lvl)}")
        elif args.command == "alerts":
            snap = snapshot(units, now, ledger)
            for a in snap.alerts:
                print(f"[{a.severity:<6}] {a.type:<15} {a.blood_type:<4} {a.message}")
            if not snap.alerts:
                print("No active alerts.")
        elif args.command == "ack":
            try:
                acknowledge_alert(conn, ledger, args.blood_type, args.alert_type, now,
                                  actor=settings.actor)
            except ValueError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 2
            print(f"Acknowledged {args.alert_type} for {args.blood_type}.")
        elif args.command == "report":
            snap = snapshot(units, now, ledger)
            export_inventory_pdf(snap.levels, snap.alerts, args.path, generated_at=now)
            print(f"Report written → {args.path}")
        elif args.command == "export":
            if args.what == "units":
                n = export_records(args.path, units.all(), UNIT_FIELDS)
            else:
                n = export_records(args.path, requests.all(), REQUEST_FIELDS)
            print(f"Exported {n} {args.what} → {args.path}")
        elif args.command == "watch":
            monitor = InventoryMonitor(conn, units, requests, ledger,
                                       interval_seconds=settings.refresh_seconds,
                                       step_minutes=settings.escalation_step_minutes)
            monitor.tick()
            monitor.start()
            stop = threading.Event()
            signal.signal(signal.SIGINT, lambda *_: stop.set())
            signal.signal(signal.SIGTERM, lambda *_: stop.set())
            stop.wait()
            monitor.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
