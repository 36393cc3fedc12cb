"""
Tests for CSV, Excel and PDF exports.
"""
import io
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.exports import (
    export_dataframe_csv,
    export_dataframe_excel,
    export_time_entries_csv,
    export_project_report_pdf,
    report_filename,
)


def make_project():
    return {
        "project_id": "p1",
        "project_name": "Mobile App MVP",
        "status": "active",
        "total_hours": 8.0,
        "cost": 550.0,
        "computed_revenue": 860.0,
        "sale_amount": 1000.0,
        "revenue": 1000.0,
        "profit": 450.0,
        "margin_pct": 45.0,
    }


def make_team():
    return pd.DataFrame({
        "name": ["John Developer", "Jane & Co <Design>"],
        "role": ["Team Member", "Team Member"],
        "hours": [3.0, 5.0],
        "rate": [75.0, 65.0],
        "cost": [225.0, 325.0],
    })


def make_scopes():
    return pd.DataFrame({
        "scope_name": ["Backend API", "Frontend Development"],
        "hours": [3.0, 5.0],
        "cost": [225.0, 325.0],
        "revenue": [360.0, 500.0],
        "profit": [135.0, 175.0],
    })


class TestTableExports:
    """Tests for tabular exports."""

    def test_csv(self):
        data, filename = export_dataframe_csv(pd.DataFrame({"a": [1, 2]}), "out.csv")
        assert filename == "out.csv"
        assert data.decode("utf-8").splitlines() == ["a", "1", "2"]

    def test_csv_default_name(self):
        _, filename = export_dataframe_csv(pd.DataFrame({"a": [1]}))
        assert filename.startswith("export_") and filename.endswith(".csv")

    def test_excel_roundtrip_sheet(self):
        data, _ = export_dataframe_excel(pd.DataFrame({"a": [1, 2]}), sheet_name="Scopes")
        frame = pd.read_excel(io.BytesIO(data), sheet_name="Scopes")
        assert frame["a"].tolist() == [1, 2]

    def test_time_entries_adds_hours(self):
        entries = pd.DataFrame({
            "created_at": ["2024-01-01T00:00:00+00:00"],
            "project_name": ["Alpha"],
            "minutes": [90],
        })
        data, filename = export_time_entries_csv(entries)
        lines = data.decode("utf-8").splitlines()
        assert lines[0] == "created_at,project_name,minutes,hours"
        assert lines[1].endswith(",90,1.5")
        assert filename.startswith("time_entries_")


class TestProjectReport:
    """Tests for the per-project PDF report."""

    def test_filename(self):
        assert report_filename("Mobile App MVP") == "Mobile_App_MVP_Analytics_Report.pdf"
        assert report_filename("  Site  v2 ") == "Site_v2_Analytics_Report.pdf"

    def test_pdf_bytes(self):
        data, filename = export_project_report_pdf(make_project(), make_scopes(), make_team(), "EUR")
        assert data.startswith(b"%PDF")
        assert filename == "Mobile_App_MVP_Analytics_Report.pdf"

    def test_pdf_with_empty_tables(self):
        data, _ = export_project_report_pdf(
            make_project(), make_scopes().iloc[0:0], make_team().iloc[0:0]
        )
        assert data.startswith(b"%PDF")

    def test_name_with_markup_characters(self):
        project = {**make_project(), "project_name": "R&D <Internal>"}
        data, filename = export_project_report_pdf(project, make_scopes(), make_team())
        assert data.startswith(b"%PDF")
        assert filename == "R&D_<Internal>_Analytics_Report.pdf"
