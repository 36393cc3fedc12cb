"""
Export utilities for tables and project reports.
"""
import io
import logging
import re
from datetime import datetime
from typing import Optional, Dict, Any
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from timetracker.ui.formatting import fmt_currency, fmt_percent, fmt_rate

logger = logging.getLogger(__name__)

HEADER_COLOR = colors.HexColor("#2563eb")


def export_dataframe_csv(df: pd.DataFrame, filename: Optional[str] = None) -> tuple:
    """
    Export dataframe to CSV bytes.

    Returns: (csv_bytes, filename)
    """
    if filename is None:
        filename = f"export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"

    csv_bytes = df.to_csv(index=False).encode('utf-8')

    return csv_bytes, filename


def export_dataframe_excel(df: pd.DataFrame, filename: Optional[str] = None,
                           sheet_name: str = "Data") -> tuple:
    """
    Export dataframe to Excel bytes.

    Returns: (excel_bytes, filename)
    """
    if filename is None:
        filename = f"export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)

    return buffer.getvalue(), filename


def export_time_entries_csv(entries: pd.DataFrame) -> tuple:
    """
    Export time entries with hours to CSV.

    Returns: (csv_bytes, filename)
    """
    cols = ["created_at", "user_name", "project_name", "scope_name",
            "description", "entry_type", "minutes", "started_at", "ended_at"]
    export_df = entries[[c for c in cols if c in entries.columns]].copy()
    if "minutes" in export_df.columns:
        export_df["hours"] = (export_df["minutes"] / 60).round(2)

    filename = f"time_entries_{datetime.now().strftime('%Y%m%d')}.csv"
    return export_df.to_csv(index=False).encode("utf-8"), filename


def report_filename(project_name: str) -> str:
    """'Mobile App MVP' -> 'Mobile_App_MVP_Analytics_Report.pdf'"""
    stem = re.sub(r"\s+", "_", project_name.strip())
    return f"{stem}_Analytics_Report.pdf"


def _table(rows: list, header: bool = True, col_widths: Optional[list] = None) -> Table:
    table = Table(rows, colWidths=col_widths, hAlign="LEFT")
    style = [
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    if header:
        style += [
            ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ]
    table.setStyle(TableStyle(style))
    return table


def export_project_report_pdf(project: Dict[str, Any],
                              scopes: pd.DataFrame,
                              team: pd.DataFrame,
                              currency: str = "USD") -> tuple:
    """
    Build a one-project analytics report.

    project is a row of the project rollup (after sale overrides) with
    project_name, status, total_hours, cost, sale_amount (or revenue), profit.

    Returns: (pdf_bytes, filename)
    """
    name = project["project_name"]
    sale_amount = project.get("sale_amount", project.get("revenue", 0.0)) or 0.0
    cost = project.get("cost", 0.0) or 0.0
    profit = sale_amount - cost
    margin = profit / sale_amount * 100 if sale_amount > 0 else 0.0

    styles = getSampleStyleSheet()
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=20 * mm, rightMargin=20 * mm,
        topMargin=20 * mm, bottomMargin=20 * mm,
        title=f"{name} Analytics Report",
    )

    story = [
        Paragraph(f"{escape(name)} - Analytics Report", styles["Title"]),
        Paragraph(f"Generated on {datetime.now().strftime('%d %b %Y')}", styles["Normal"]),
        Paragraph(f"Status: {str(project.get('status', '')).title()}", styles["Normal"]),
        Spacer(1, 8 * mm),
        Paragraph("Key Metrics", styles["Heading2"]),
        _table([
            ["Metric", "Value"],
            ["Total Hours", f"{project.get('total_hours', 0):,.2f}h"],
            ["Total Cost", fmt_currency(cost, currency)],
            ["Sale Amount", fmt_currency(sale_amount, currency)],
            ["Profit", fmt_currency(profit, currency)],
            ["Profit Margin", fmt_percent(margin)],
        ], col_widths=[60 * mm, 60 * mm]),
        Spacer(1, 8 * mm),
        Paragraph("Team Breakdown", styles["Heading2"]),
    ]

    team_rows = [["Team Member", "Role", "Hours", "Rate", "Cost"]]
    for _, member in team.iterrows():
        team_rows.append([
            member["name"],
            member["role"],
            f"{member['hours']:,.2f}h",
            fmt_rate(member["rate"], currency),
            fmt_currency(member["cost"], currency),
        ])
    if len(team_rows) == 1:
        story.append(Paragraph("No team members assigned.", styles["Normal"]))
    else:
        story.append(_table(team_rows))

    story += [Spacer(1, 8 * mm), Paragraph("Scope Breakdown", styles["Heading2"])]

    scope_rows = [["Scope", "Hours", "Cost", "Revenue", "Profit"]]
    for _, scope in scopes.iterrows():
        scope_rows.append([
            scope["scope_name"],
            f"{scope['hours']:,.2f}h",
            fmt_currency(scope["cost"], currency),
            fmt_currency(scope["revenue"], currency),
            fmt_currency(scope["profit"], currency),
        ])
    if len(scope_rows) == 1:
        story.append(Paragraph("No scopes defined.", styles["Normal"]))
    else:
        story.append(_table(scope_rows))

    doc.build(story)
    logger.info("Generated analytics report for %s", name)

    return buffer.getvalue(), report_filename(name)
