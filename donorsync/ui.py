from datetime import datetime

from PyQt6 import QtCore, QtWidgets

from .blood_types import ALL_TYPES
from .compat import check_compatibility, compatible_donors_for, compatible_recipients_for, suggest_alternative
from .config import Settings
from .db import get_conn
from .escalation import (ACTIVE, PAUSED, cancel, complete, escalate_manually, escalation_level,
                         minutes_until_next_level, pause, resume, rule_for)
from .filters import filter_units, sort_units
from .inventory import UNIT_STATES, classify_unit, days_left, stock_percentage, stock_status
from .migrate_sqlite import ensure_schema
from .reports import export_audit_pdf, export_inventory_pdf
from .service import (acknowledge_alert, dispatch_escalations, drain_outbox, log_notifier,
                      open_emergency, snapshot, update_emergency)
from .store import SqliteRequestStore, SqliteUnitStore, UnknownRecord, load_ledger


def _item(value) -> QtWidgets.QTableWidgetItem:
    return QtWidgets.QTableWidgetItem("" if value is None else str(value))


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, settings: Settings):
        super().__init__()
        self.settings = settings
        self.db_path = settings.db_path
        self.alerts = []
        with get_conn(self.db_path) as conn:
            ensure_schema(conn)
        self.setWindowTitle(f"DonorSync — {settings.actor}")

        self.tabs = QtWidgets.QTabWidget()
        self.tabs.addTab(self._inventory_tab(), "Inventory")
        self.tabs.addTab(self._expiration_tab(), "Expiration")
        self.tabs.addTab(self._compat_tab(), "Compatibility")
        self.tabs.addTab(self._escalation_tab(), "Escalations")
        self.tabs.addTab(self._audit_tab(), "Audit Log")
        self.setCentralWidget(self.tabs)
        self.resize(1080, 680)

        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(settings.refresh_seconds * 1000)
        self.timer.timeout.connect(self.refresh_all)
        self.auto_refresh.setChecked(True)
        self.refresh_all()

    # ---- Inventory ----
    def _inventory_tab(self):
        w = QtWidgets.QWidget()
        v = QtWidgets.QVBoxLayout(w)
        row = QtWidgets.QHBoxLayout()
        btn_refresh = QtWidgets.QPushButton("Refresh")
        self.auto_refresh = QtWidgets.QCheckBox("Auto-refresh")
        btn_export = QtWidgets.QPushButton("Export Report (PDF)")
        self.updated_lbl = QtWidgets.QLabel("")
        row.addWidget(btn_refresh); row.addWidget(self.auto_refresh); row.addWidget(btn_export)
        row.addStretch(1); row.addWidget(self.updated_lbl)

        self.levels_table = QtWidgets.QTableWidget(0, 7)
        self.levels_table.setHorizontalHeaderLabels(
            ["type", "stock", "critical", "minimum", "optimal", "expiring", "status"])
        self.levels_table.horizontalHeader().setStretchLastSection(True)

        self.alert_list = QtWidgets.QListWidget()
        btn_ack = QtWidgets.QPushButton("Acknowledge Selected Alert")

        v.addLayout(row)
        v.addWidget(self.levels_table)
        v.addWidget(QtWidgets.QLabel("Alerts:"))
        v.addWidget(self.alert_list)
        v.addWidget(btn_ack)

        btn_refresh.clicked.connect(self.refresh_all)
        self.auto_refresh.toggled.connect(self._toggle_timer)
        btn_export.clicked.connect(self._export_report)
        btn_ack.clicked.connect(self._ack_selected)
        return w

    def _toggle_timer(self, on: bool):
        if on:
            self.timer.start()
        else:
            self.timer.stop()

    def refresh_all(self):
        now = datetime.now()
        with get_conn(self.db_path) as conn:
            ledger = load_ledger(conn, self.settings.alert_cooldown)
            snap = snapshot(SqliteUnitStore(conn), now, ledger)
            dispatch_escalations(conn, SqliteRequestStore(conn), now,
                                 self.settings.escalation_step_minutes)
            drain_outbox(conn, log_notifier, now)
        self.snap = snap
        self.alerts = snap.alerts

        self.levels_table.setRowCount(len(snap.levels))
        for r, lvl in enumerate(snap.levels.values()):
            status = f"{stock_status(lvl)} ({stock_percentage(lvl):.0f}%)"
            for c, val in enumerate([lvl.blood_type, lvl.current_stock, lvl.critical_level,
                                     lvl.minimum_required, lvl.optimal_level,
                                     lvl.units_expiring_soon, status]):
                self.levels_table.setItem(r, c, _item(val))

        self.alert_list.clear()
        for a in snap.alerts:
            self.alert_list.addItem(f"[{a.severity.upper()}] {a.message}")
        self.updated_lbl.setText(f"Last updated {now:%H:%M:%S}")
        self._refresh_units()
        self._refresh_escalations()
        self._refresh_audit()

    def _ack_selected(self):
        row = self.alert_list.currentRow()
        if row < 0 or row >= len(self.alerts):
            return
        alert = self.alerts[row]
        with get_conn(self.db_path) as conn:
            ledger = load_ledger(conn, self.settings.alert_cooldown)
            acknowledge_alert(conn, ledger, alert.blood_type, alert.type, datetime.now(),
                              actor=self.settings.actor)
        self.alert_list.item(row).setText(f"[ACK] {alert.message}")

    def _export_report(self):
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Save Inventory PDF", "inventory.pdf", "PDF Files (*.pdf)"
        )
        if not path:
            return
        try:
            export_inventory_pdf(self.snap.levels, self.snap.alerts, path, self.snap.taken_at)
            QtWidgets.QMessageBox.information(self, "Export", f"Report exported → {path}")
        except Exception as e:
            QtWidgets.QMessageBox.critical(self, "Export failed", str(e))

    # ---- Expiration ----
    def _expiration_tab(self):
        w = QtWidgets.QWidget()
        v = QtWidgets.QVBoxLayout(w)
        row = QtWidgets.QHBoxLayout()
        self.search = QtWidgets.QLineEdit()
        self.search.setPlaceholderText("Search id, donor, batch, location")
        self.status_filter = QtWidgets.QComboBox(); self.status_filter.addItems(["all"] + UNIT_STATES)
        self.type_filter = QtWidgets.QComboBox(); self.type_filter.addItems(["all"] + ALL_TYPES)
        self.sort_by = QtWidgets.QComboBox(); self.sort_by.addItems(["expiration", "collection", "blood_type"])
        for widget in (self.search, self.status_filter, self.type_filter, self.sort_by):
            row.addWidget(widget)
        self.units_table = QtWidgets.QTableWidget(0, 7)
        self.units_table.setHorizontalHeaderLabels(
            ["id", "type", "collected", "expires", "days left", "state", "location"])
        self.units_table.horizontalHeader().setStretchLastSection(True)
        self.units_lbl = QtWidgets.QLabel("")
        v.addLayout(row); v.addWidget(self.units_table); v.addWidget(self.units_lbl)

        self.search.textChanged.connect(self._refresh_units)
        for combo in (self.status_filter, self.type_filter, self.sort_by):
            combo.currentTextChanged.connect(self._refresh_units)
        return w

    def _refresh_units(self, *_):
        if not hasattr(self, "snap"):
            return
        now = self.snap.taken_at
        units = filter_units(self.snap.units, now, search=self.search.text(),
                             status=self.status_filter.currentText(),
                             blood_type=self.type_filter.currentText())
        units = sort_units(units, self.sort_by.currentText())
        shown = units[:200]
        self.units_table.setRowCount(len(shown))
        for r, u in enumerate(shown):
            for c, val in enumerate([u.id, u.blood_type, f"{u.collection_date:%Y-%m-%d}",
                                     f"{u.expiration_date:%Y-%m-%d}", days_left(u, now),
                                     classify_unit(u, now), u.location]):
                self.units_table.setItem(r, c, _item(val))
        self.units_lbl.setText(f"Showing {len(shown)} of {len(units)} matching units "
                               f"({len(self.snap.units)} total)")

    # ---- Compatibility ----
    def _compat_tab(self):
        w = QtWidgets.QWidget()
        f = QtWidgets.QFormLayout(w)
        self.donor = QtWidgets.QComboBox(); self.donor.addItems(ALL_TYPES)
        self.recipient = QtWidgets.QComboBox(); self.recipient.addItems(ALL_TYPES)
        btn = QtWidgets.QPushButton("Check")
        self.compat_msg = QtWidgets.QLabel("")
        self.compat_lists = QtWidgets.QLabel("")
        f.addRow("Donor type:", self.donor)
        f.addRow("Recipient type:", self.recipient)
        f.addRow(btn)
        f.addRow(self.compat_msg)
        f.addRow(self.compat_lists)
        btn.clicked.connect(self._do_check)
        return w

    def _do_check(self):
        d, r = self.donor.currentText(), self.recipient.currentText()
        res = check_compatibility(d, r)
        verdict = "Compatible Donation" if res.can_donate else "Incompatible Donation"
        self.compat_msg.setText(f"{d} → {r}: {verdict} — {res.reason}")
        text = (f"{r} can receive from: {', '.join(compatible_donors_for(r))}\n"
                f"{d} can donate to: {', '.join(compatible_recipients_for(d))}")
        if hasattr(self, "snap"):
            alt = suggest_alternative(r, self.snap.counts())
            if alt:
                text += f"\nNo stock for {r}. Suggested compatible alternative (rarity-aware): {alt}"
        self.compat_lists.setText(text)

    # ---- Escalations ----
    def _escalation_tab(self):
        w = QtWidgets.QWidget()
        v = QtWidgets.QVBoxLayout(w)
        form = QtWidgets.QHBoxLayout()
        self.em_type = QtWidgets.QComboBox(); self.em_type.addItems(ALL_TYPES)
        self.em_hospital = QtWidgets.QLineEdit(); self.em_hospital.setPlaceholderText("Hospital")
        self.em_units = QtWidgets.QSpinBox(); self.em_units.setRange(1, 99)
        btn_open = QtWidgets.QPushButton("Broadcast Emergency")
        for widget in (self.em_type, self.em_hospital, self.em_units, btn_open):
            form.addWidget(widget)

        self.em_table = QtWidgets.QTableWidget(0, 6)
        self.em_table.setHorizontalHeaderLabels(["id", "type", "hospital", "status", "level", "next in"])
        self.em_table.horizontalHeader().setStretchLastSection(True)

        actions = QtWidgets.QHBoxLayout()
        buttons = {}
        for name in ("Escalate", "Pause", "Resume", "Complete", "Cancel"):
            buttons[name] = QtWidgets.QPushButton(name)
            actions.addWidget(buttons[name])
        actions.addStretch(1)

        v.addLayout(form); v.addWidget(self.em_table); v.addLayout(actions)
        btn_open.clicked.connect(self._open_emergency)
        buttons["Escalate"].clicked.connect(
            lambda: self._update_emergency("Escalate Emergency", lambda e, now: escalate_manually(e)))
        buttons["Pause"].clicked.connect(lambda: self._update_emergency("Pause Emergency", pause))
        buttons["Resume"].clicked.connect(lambda: self._update_emergency("Resume Emergency", resume))
        buttons["Complete"].clicked.connect(lambda: self._update_emergency("Complete Emergency", complete))
        buttons["Cancel"].clicked.connect(lambda: self._update_emergency("Cancel Emergency", cancel))
        return w

    def _open_emergency(self):
        hospital = self.em_hospital.text().strip()
        if not hospital:
            QtWidgets.QMessageBox.warning(self, "Emergency", "Hospital is required.")
            return
        with get_conn(self.db_path) as conn:
            open_emergency(conn, SqliteRequestStore(conn), self.em_type.currentText(), hospital,
                           datetime.now(), int(self.em_units.value()), actor=self.settings.actor)
        self.em_hospital.clear()
        self.refresh_all()

    def _update_emergency(self, action, change):
        row = self.em_table.currentRow()
        if row < 0:
            return
        em_id = self.em_table.item(row, 0).text()
        try:
            with get_conn(self.db_path) as conn:
                update_emergency(conn, SqliteRequestStore(conn), em_id, change, datetime.now(),
                                 action, actor=self.settings.actor,
                                 step_minutes=self.settings.escalation_step_minutes)
        except UnknownRecord as e:
            QtWidgets.QMessageBox.warning(self, "Emergency", str(e))
        self.refresh_all()

    def _refresh_escalations(self):
        now = datetime.now()
        step = self.settings.escalation_step_minutes
        with get_conn(self.db_path) as conn:
            emergencies = SqliteRequestStore(conn).emergencies()
        self.em_table.setRowCount(len(emergencies))
        for r, em in enumerate(emergencies):
            level = escalation_level(em, now, step)
            rule = rule_for(level)
            nxt = minutes_until_next_level(em, now, step)
            label = f"{level} — {rule.name}" if rule else str(level)
            if em.status not in (ACTIVE, PAUSED):
                label = f"{level} (closed)"
            for c, val in enumerate([em.id, em.blood_type, em.hospital, em.status, label,
                                     f"{nxt} min" if nxt is not None else "-"]):
                self.em_table.setItem(r, c, _item(val))

    # ---- Audit ----
    def _audit_tab(self):
        w = QtWidgets.QWidget()
        v = QtWidgets.QVBoxLayout(w)
        self.audit_table = QtWidgets.QTableWidget(0, 6)
        self.audit_table.setHorizontalHeaderLabels(["id", "at", "actor", "action", "entity", "entity_id"])
        self.audit_table.horizontalHeader().setStretchLastSection(True)

        btn_row = QtWidgets.QHBoxLayout()
        btn_refresh = QtWidgets.QPushButton("Refresh Audit Log")
        btn_export = QtWidgets.QPushButton("Export Audit (PDF)")
        btn_row.addWidget(btn_refresh)
        btn_row.addWidget(btn_export)
        btn_row.addStretch(1)

        v.addLayout(btn_row)
        v.addWidget(self.audit_table)

        btn_refresh.clicked.connect(self._refresh_audit)
        btn_export.clicked.connect(self._export_audit)
        return w

    def _refresh_audit(self):
        with get_conn(self.db_path) as conn:
            rows = list(conn.execute(
                "SELECT id, at, actor, action, entity, entity_id "
                "FROM audit_log ORDER BY id DESC LIMIT 500"
            ))
        self.audit_table.setRowCount(len(rows))
        for r, row in enumerate(rows):
            for c, key in enumerate(["id", "at", "actor", "action", "entity", "entity_id"]):
                self.audit_table.setItem(r, c, _item(row[key]))

    def _export_audit(self):
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Save Audit PDF", "audit_log.pdf", "PDF Files (*.pdf)"
        )
        if not path:
            return
        with get_conn(self.db_path) as conn:
            rows = list(conn.execute(
                "SELECT id, at, actor, action, entity, entity_id, details_json "
                "FROM audit_log ORDER BY id ASC"
            ))
        try:
            export_audit_pdf(rows, path)
            QtWidgets.QMessageBox.information(self, "Export", f"Audit exported → {path}")
        except Exception as e:
            QtWidgets.QMessageBox.critical(self, "Export failed", str(e))
