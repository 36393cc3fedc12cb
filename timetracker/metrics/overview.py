"""
Dashboard and time-use summaries.
"""
import pandas as pd
import numpy as np
from typing import Optional, Dict, Any

from timetracker.config import config, MONTH_LABELS
from timetracker.metrics.financials import round_half_up


def _minutes(entries: pd.DataFrame) -> pd.Series:
    return pd.to_numeric(entries["minutes"], errors="coerce").fillna(0)


def entry_dates(entries: pd.DataFrame) -> pd.Series:
    """Date of each entry: created_at, falling back to started_at then ended_at."""
    result = pd.Series(pd.NaT, index=entries.index, dtype="datetime64[ns, UTC]")
    for col in ["created_at", "started_at", "ended_at"]:
        if col in entries.columns:
            parsed = pd.to_datetime(entries[col], errors="coerce", utc=True, format="ISO8601")
            result = result.fillna(parsed)
    return result


def dashboard_summary(projects: pd.DataFrame,
                      entries: pd.DataFrame,
                      users: pd.DataFrame) -> Dict[str, Any]:
    """
    Headline numbers for the dashboard.

    estimated_revenue = total hours × average base selling rate of all users.
    """
    active_projects = int((projects["status"] == "active").sum()) if len(projects) else 0
    total_minutes = float(_minutes(entries).sum()) if len(entries) else 0.0
    total_hours = total_minutes / 60

    team_size = int(len(users))
    if team_size:
        rates = pd.to_numeric(users["base_selling_rate"], errors="coerce").fillna(0)
        avg_selling_rate = float(rates.sum()) / team_size
    else:
        avg_selling_rate = 0.0

    return {
        "active_projects": active_projects,
        "total_hours": total_hours,
        "team_members": team_size,
        "avg_selling_rate": avg_selling_rate,
        "estimated_revenue": total_hours * avg_selling_rate,
    }


def project_progress(project_id: str,
                     entries: pd.DataFrame,
                     scopes: pd.DataFrame) -> pd.DataFrame:
    """
    Time per scope of a project and its share of the project's total (0-100).
    """
    columns = ["scope_id", "scope_name", "minutes", "progress"]
    project_scopes = scopes[scopes["project_id"] == project_id] if len(scopes) else scopes
    if len(project_scopes) == 0:
        return pd.DataFrame(columns=columns)

    if len(entries):
        project_entries = entries[entries["project_id"] == project_id]
        by_scope = project_entries.assign(minutes=_minutes(project_entries)).groupby("scope_id")["minutes"].sum()
    else:
        by_scope = pd.Series(dtype=float)

    total = float(by_scope.sum())
    result = project_scopes[["id", "name"]].rename(columns={"id": "scope_id", "name": "scope_name"})
    result = result.assign(minutes=result["scope_id"].map(by_scope).fillna(0).astype(int))
    result["progress"] = np.minimum(
        round_half_up(result["minutes"] / max(total, 1) * 100), 100
    ).astype(int)

    return result[columns].reset_index(drop=True)


def monthly_hours(entries: pd.DataFrame,
                  year: int,
                  target: Optional[int] = None) -> pd.DataFrame:
    """
    Logged hours per calendar month of a year against a monthly target.

    Always returns 12 rows (Jan..Dec).
    """
    if target is None:
        target = config.monthly_hours_target

    if len(entries):
        dates = entry_dates(entries)
        in_year = dates.dt.year == year
        minutes = _minutes(entries)[in_year].groupby(dates[in_year].dt.month).sum()
    else:
        minutes = pd.Series(dtype=float)

    rows = []
    for index, label in enumerate(MONTH_LABELS, start=1):
        month_minutes = float(minutes.get(index, 0.0))
        rows.append({
            "month": label,
            "hours": int(round_half_up(month_minutes / 60)),
            "target": target,
        })
    return pd.DataFrame(rows)


def recent_entries(entries: pd.DataFrame, n: int = 5) -> pd.DataFrame:
    """Most recent n entries by creation time."""
    if len(entries) == 0:
        return entries
    order = entry_dates(entries).sort_values(ascending=False, kind="stable").index
    return entries.loc[order].head(n).reset_index(drop=True)


def hours_by_user(entries: pd.DataFrame) -> pd.DataFrame:
    """Total logged hours per user, largest first."""
    if len(entries) == 0:
        return pd.DataFrame(columns=["user_name", "hours"])
    result = (
        entries.assign(hours=_minutes(entries) / 60)
        .groupby("user_name")["hours"].sum()
        .reset_index()
        .sort_values("hours", ascending=False)
    )
    return result.reset_index(drop=True)
