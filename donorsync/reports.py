import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .alerts import AlertNotification
from .inventory import InventoryLevel, stock_percentage, stock_status

_BASE_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey), ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"), ("FONTSIZE", (0, 0), (-1, -1), 9),
    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
]
_STATUS_COLORS = {"critical": colors.salmon, "low": colors.lightyellow, "optimal": colors.lightgreen}


def _doc(pdf_path: str):
    return SimpleDocTemplate(pdf_path, pagesize=A4, topMargin=1*cm, bottomMargin=1*cm,
                             leftMargin=1.3*cm, rightMargin=1.3*cm)


def export_inventory_pdf(levels: Dict[str, InventoryLevel], alerts: List[AlertNotification],
                         pdf_path: str, generated_at: Optional[datetime] = None):
    styles = getSampleStyleSheet()
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M")
    story = [Paragraph("DonorSync — Inventory Levels", styles["Title"]),
             Paragraph(f"Generated {stamp}", styles["Normal"]), Spacer(1, 0.3*cm)]

    data = [["Blood Type", "Stock", "Critical", "Minimum", "Optimal", "Expiring", "Fill %", "Status"]]
    row_styles = []
    for i, level in enumerate(levels.values(), start=1):
        status = stock_status(level)
        data.append([level.blood_type, level.current_stock, level.critical_level,
                     level.minimum_required, level.optimal_level, level.units_expiring_soon,
                     f"{stock_percentage(level):.0f}", status])
        if status in _STATUS_COLORS:
            row_styles.append(("BACKGROUND", (7, i), (7, i), _STATUS_COLORS[status]))
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle(_BASE_STYLE + row_styles))
    story.append(table)

    story += [Spacer(1, 0.5*cm), Paragraph(f"Alerts ({len(alerts)})", styles["Heading2"])]
    if alerts:
        rows = [["Severity", "Type", "Blood Type", "Message"]]
        rows += [[a.severity, a.type, a.blood_type, Paragraph(escape(a.message), styles["Normal"])]
                 for a in alerts]
        table = Table(rows, repeatRows=1, colWidths=[2.0*cm, 3.0*cm, 2.2*cm, 11.0*cm])
        table.setStyle(TableStyle(_BASE_STYLE))
        story.append(table)
    else:
        story.append(Paragraph("No active alerts.", styles["Normal"]))
    _doc(pdf_path).build(story)


def export_audit_pdf(rows: Iterable[Dict[str, Any]], pdf_path: str):
    doc = SimpleDocTemplate(pdf_path, pagesize=A4, topMargin=1*cm, bottomMargin=1*cm,
                            leftMargin=1.0*cm, rightMargin=1.0*cm)
    styles = getSampleStyleSheet()
    story = [Paragraph("DonorSync — Audit Log", styles["Title"]), Spacer(1, 0.3*cm)]

    data = [["ID", "Timestamp", "Actor", "Action", "Entity", "Entity ID", "Details"]]
    for r in rows:
        details = r.get("details_json")
        try:
            details = json.dumps(json.loads(details) if details else {}, ensure_ascii=False)
        except ValueError:
            details = ""
        data.append([r.get("id", ""), r.get("at", ""), r.get("actor", ""), r.get("action", ""),
                     r.get("entity", ""), r.get("entity_id", ""),
                     Paragraph(escape(details), styles["Normal"])])

    table = Table(data, repeatRows=1,
                  colWidths=[1.2*cm, 3.3*cm, 2.0*cm, 2.5*cm, 2.0*cm, 2.2*cm, 6.4*cm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey), ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"), ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP")
    ]))
    story.append(table)
    doc.build(story)
