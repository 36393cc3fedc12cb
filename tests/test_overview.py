"""
Tests for dashboard and time-use summaries.
"""
import pytest
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.metrics.overview import (
    entry_dates,
    dashboard_summary,
    project_progress,
    monthly_hours,
    recent_entries,
    hours_by_user,
)


def make_entries():
    return pd.DataFrame({
        "id": ["e1", "e2", "e3"],
        "project_id": ["p1", "p1", "p2"],
        "scope_id": ["s1", "s2", "s3"],
        "user_name": ["Ann", "Ben", "Ann"],
        "minutes": [90, 60, 30],
        "created_at": ["2024-01-15T10:00:00+00:00", "2024-01-20T09:30:00+00:00",
                       "2023-12-31T23:00:00+00:00"],
        "started_at": [None, None, None],
        "ended_at": [None, None, None],
    })


def make_scopes():
    return pd.DataFrame({
        "id": ["s1", "s2", "s3"],
        "project_id": ["p1", "p1", "p2"],
        "name": ["Frontend", "Backend", "Design"],
    })


class TestEntryDates:
    """Tests for entry date resolution."""

    def test_falls_back_to_started_at(self):
        entries = pd.DataFrame({
            "created_at": [None],
            "started_at": ["2024-03-01T08:00:00+00:00"],
            "ended_at": [None],
        })
        assert entry_dates(entries).iloc[0].month == 3

    def test_unparseable_is_nat(self):
        entries = pd.DataFrame({"created_at": ["garbage"]})
        assert pd.isna(entry_dates(entries).iloc[0])


class TestDashboardSummary:
    """Tests for dashboard headline numbers."""

    def test_summary(self):
        projects = pd.DataFrame({"id": ["p1", "p2"], "status": ["active", "paused"]})
        users = pd.DataFrame({"id": ["u1", "u2"], "base_selling_rate": [100.0, 150.0]})

        summary = dashboard_summary(projects, make_entries(), users)

        assert summary["active_projects"] == 1
        assert summary["total_hours"] == pytest.approx(3.0)
        assert summary["team_members"] == 2
        assert summary["avg_selling_rate"] == pytest.approx(125.0)
        assert summary["estimated_revenue"] == pytest.approx(375.0)

    def test_empty(self):
        empty = pd.DataFrame(columns=["id", "status", "minutes", "base_selling_rate"])
        summary = dashboard_summary(empty, empty, empty)
        assert summary["total_hours"] == 0
        assert summary["estimated_revenue"] == 0


class TestProjectProgress:
    """Tests for per-scope progress bars."""

    def test_shares_of_project_time(self):
        progress = project_progress("p1", make_entries(), make_scopes())
        assert progress["scope_name"].tolist() == ["Frontend", "Backend"]
        assert progress["progress"].tolist() == [60, 40]

    def test_scope_without_time(self):
        scopes = pd.concat([make_scopes(), pd.DataFrame({
            "id": ["s4"], "project_id": ["p1"], "name": ["QA"],
        })], ignore_index=True)
        progress = project_progress("p1", make_entries(), scopes).set_index("scope_id")
        assert progress.loc["s4", "progress"] == 0

    def test_project_without_scopes(self):
        assert len(project_progress("p9", make_entries(), make_scopes())) == 0


class TestMonthlyHours:
    """Tests for the monthly hours series."""

    def test_twelve_months_with_target(self):
        result = monthly_hours(make_entries(), 2024)
        assert len(result) == 12
        assert result["month"].iloc[0] == "Jan"
        assert (result["target"] == 160).all()

    def test_hours_by_month(self):
        result = monthly_hours(make_entries(), 2024).set_index("month")
        # 150 minutes = 2.5h, rounded half up
        assert result.loc["Jan", "hours"] == 3
        assert result.loc["Dec", "hours"] == 0

    def test_other_year(self):
        result = monthly_hours(make_entries(), 2023, target=100).set_index("month")
        assert result.loc["Dec", "hours"] == 1
        assert result.loc["Dec", "target"] == 100


class TestRecentAndUsers:
    """Tests for recent entries and per-user totals."""

    def test_recent_entries_newest_first(self):
        recent = recent_entries(make_entries(), n=2)
        assert recent["id"].tolist() == ["e2", "e1"]

    def test_hours_by_user(self):
        result = hours_by_user(make_entries())
        assert result["user_name"].tolist() == ["Ann", "Ben"]
        assert result["hours"].tolist() == pytest.approx([2.0, 1.0])
