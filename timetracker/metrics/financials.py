"""
Financial rollups for the analytics view.

Single source of truth for: hours, cost, revenue, profit and margin at entry,
scope, team member, project and portfolio level.

Rate resolution per time entry:
- entry user is a project member: cost_rate = member cost rate (or the
  default cost rate when 0/empty), selling_rate = member selling rate (or
  cost_rate * selling multiplier when 0/empty)
- otherwise: default cost rate and default cost rate * selling multiplier
"""
import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Tuple, Any

from timetracker.config import (
    config, ROLE_LABELS, SCOPE_CATEGORIES, SCOPE_CATEGORY_OTHER, SCOPE_CATEGORY_COLORS,
)


SCOPE_COLUMNS = ["project_id", "project_name", "scope_id", "scope_name",
                 "hours", "cost", "revenue", "profit"]
TEAM_COLUMNS = ["project_id", "project_name", "member_id", "user_id", "name",
                "role", "hours", "rate", "cost"]
PROJECT_COLUMNS = ["project_id", "project_name", "status", "total_hours",
                   "revenue", "cost", "profit", "margin_pct"]


def round_half_up(values, decimals: int = 0):
    """Round halves up: 1.5 -> 2, 2.5 -> 3, -2.5 -> -2."""
    factor = 10 ** decimals
    return np.floor(np.asarray(values, dtype=float) * factor + 0.5) / factor


def _rate_or_default(series: pd.Series, default) -> pd.Series:
    series = pd.to_numeric(series, errors="coerce")
    return series.where(series.notna() & (series != 0), default)


# =============================================================================
# ENTRY LEVEL
# =============================================================================

def entry_financials(entries: pd.DataFrame, members: pd.DataFrame) -> pd.DataFrame:
    """
    Attach hours, resolved rates, cost and revenue to each time entry.
    """
    df = entries.copy()
    if len(df) == 0:
        for col in ["hours", "cost_rate", "selling_rate", "cost", "revenue"]:
            df[col] = pd.Series(dtype=float)
        return df

    df["minutes"] = pd.to_numeric(df["minutes"], errors="coerce").fillna(0)
    df["hours"] = df["minutes"] / 60

    if len(members) > 0:
        rates = members[["project_id", "user_id", "cost_rate", "selling_rate"]].drop_duplicates(
            subset=["project_id", "user_id"]
        )
        rates = rates.rename(columns={"cost_rate": "member_cost_rate",
                                      "selling_rate": "member_selling_rate"})
        df = df.merge(rates, on=["project_id", "user_id"], how="left")
    else:
        df["member_cost_rate"] = np.nan
        df["member_selling_rate"] = np.nan

    df["cost_rate"] = _rate_or_default(df["member_cost_rate"], config.default_cost_rate)
    df["selling_rate"] = _rate_or_default(
        df["member_selling_rate"], df["cost_rate"] * config.selling_rate_multiplier
    )
    df = df.drop(columns=["member_cost_rate", "member_selling_rate"])

    df["cost"] = df["hours"] * df["cost_rate"]
    df["revenue"] = df["hours"] * df["selling_rate"]

    return df


# =============================================================================
# SCOPE / TEAM / PROJECT LEVEL
# =============================================================================

def scope_financials(projects: pd.DataFrame,
                     scopes: pd.DataFrame,
                     entries: pd.DataFrame,
                     members: pd.DataFrame) -> pd.DataFrame:
    """
    Cost, revenue and profit per project scope.

    Every scope is listed, including scopes with no logged time. Hours are
    rounded to 2dp, money to whole units.
    """
    if len(projects) == 0 or len(scopes) == 0:
        return pd.DataFrame(columns=SCOPE_COLUMNS)

    base = scopes[["id", "project_id", "name"]].rename(
        columns={"id": "scope_id", "name": "scope_name"}
    )
    base = base.merge(
        projects[["id", "name"]].rename(columns={"id": "project_id", "name": "project_name"}),
        on="project_id",
        how="inner",
    )

    fin = entry_financials(entries, members)
    if len(fin) > 0:
        sums = fin.groupby(["project_id", "scope_id"]).agg(
            hours=("hours", "sum"),
            cost=("cost", "sum"),
            revenue=("revenue", "sum"),
        ).reset_index()
        result = base.merge(sums, on=["project_id", "scope_id"], how="left")
    else:
        result = base.assign(hours=np.nan, cost=np.nan, revenue=np.nan)

    result[["hours", "cost", "revenue"]] = result[["hours", "cost", "revenue"]].fillna(0.0)
    result["profit"] = round_half_up(result["revenue"] - result["cost"])
    result["hours"] = round_half_up(result["hours"], 2)
    result["cost"] = round_half_up(result["cost"])
    result["revenue"] = round_half_up(result["revenue"])

    return result[SCOPE_COLUMNS].reset_index(drop=True)


def team_financials(projects: pd.DataFrame,
                    entries: pd.DataFrame,
                    members: pd.DataFrame,
                    scope_names: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Hours and cost per project member.

    When scope_names is given only time on those scopes counts, and members
    with no time on them are dropped.
    """
    if len(projects) == 0 or len(members) == 0:
        return pd.DataFrame(columns=TEAM_COLUMNS)

    team = members.merge(
        projects[["id", "name"]].rename(columns={"id": "project_id", "name": "project_name"}),
        on="project_id",
        how="inner",
    )

    df = entries.copy()
    if scope_names and len(df) > 0 and "scope_name" in df.columns:
        df = df[df["scope_name"].isin(scope_names)]

    if len(df) > 0:
        minutes = (
            df.assign(minutes=pd.to_numeric(df["minutes"], errors="coerce").fillna(0))
            .groupby(["project_id", "user_id"])["minutes"].sum()
            .rename("minutes")
            .reset_index()
        )
        team = team.merge(minutes, on=["project_id", "user_id"], how="left")
    else:
        team["minutes"] = 0.0

    team["minutes"] = team["minutes"].fillna(0.0)
    hours = team["minutes"] / 60
    team["rate"] = _rate_or_default(team["cost_rate"], config.default_cost_rate)
    team["cost"] = round_half_up(hours * team["rate"])
    team["hours"] = round_half_up(hours, 2)
    team["role"] = team["role"].map(ROLE_LABELS).fillna(ROLE_LABELS["regular"])
    team = team.rename(columns={"id": "member_id", "user_name": "name"})

    if scope_names:
        team = team[team["hours"] > 0]

    return team[TEAM_COLUMNS].reset_index(drop=True)


def project_financials(projects: pd.DataFrame, scope_fin: pd.DataFrame) -> pd.DataFrame:
    """
    Project totals from scope rollups.

    revenue and cost are the sums of the (rounded) scope values.
    """
    if len(projects) == 0:
        return pd.DataFrame(columns=PROJECT_COLUMNS)

    result = projects[["id", "name", "status"]].rename(
        columns={"id": "project_id", "name": "project_name"}
    )

    if len(scope_fin) > 0:
        sums = scope_fin.groupby("project_id").agg(
            total_hours=("hours", "sum"),
            revenue=("revenue", "sum"),
            cost=("cost", "sum"),
        ).reset_index()
        result = result.merge(sums, on="project_id", how="left")
    else:
        result = result.assign(total_hours=np.nan, revenue=np.nan, cost=np.nan)

    result[["total_hours", "revenue", "cost"]] = (
        result[["total_hours", "revenue", "cost"]].astype(float).fillna(0.0)
    )
    result["total_hours"] = round_half_up(result["total_hours"], 2)
    result["profit"] = result["revenue"] - result["cost"]
    result["margin_pct"] = np.where(
        result["revenue"] > 0,
        result["profit"] / result["revenue"].where(result["revenue"] > 0, 1) * 100,
        0.0,
    )

    return result[PROJECT_COLUMNS].reset_index(drop=True)


# =============================================================================
# OVERRIDES
# =============================================================================

def apply_sale_overrides(project_fin: pd.DataFrame,
                         overrides: Optional[Dict[str, float]] = None) -> pd.DataFrame:
    """
    Replace computed revenue with an agreed sale amount per project.

    Adds sale_amount and computed_revenue; profit and margin_pct are
    recomputed against the sale amount. Amounts of zero or less are ignored.
    """
    df = project_fin.copy()
    overrides = overrides or {}

    df["computed_revenue"] = df["revenue"]
    df["sale_amount"] = [
        float(overrides[pid]) if (overrides.get(pid) or 0) > 0 else rev
        for pid, rev in zip(df["project_id"], df["revenue"])
    ]
    df["sale_amount"] = df["sale_amount"].astype(float)
    df["revenue"] = df["sale_amount"]
    df["profit"] = df["sale_amount"] - df["cost"]
    df["margin_pct"] = np.where(
        df["sale_amount"] > 0,
        df["profit"] / df["sale_amount"].where(df["sale_amount"] > 0, 1) * 100,
        0.0,
    )
    return df


def apply_rate_overrides(team_fin: pd.DataFrame,
                         overrides: Optional[Dict[str, Dict[str, float]]] = None) -> pd.DataFrame:
    """
    Apply per-project member cost-rate overrides ({project_id: {user_id: rate}}).
    """
    df = team_fin.copy()
    if not overrides or len(df) == 0:
        return df

    new_rates = [
        overrides.get(pid, {}).get(uid, rate)
        for pid, uid, rate in zip(df["project_id"], df["user_id"], df["rate"])
    ]
    df["rate"] = pd.Series(new_rates, index=df.index, dtype=float)
    df["cost"] = round_half_up(df["hours"] * df["rate"])
    return df


# =============================================================================
# FILTERS
# =============================================================================

def filter_financials(projects: pd.DataFrame,
                      scope_fin: pd.DataFrame,
                      search: str = "",
                      project_ids: Optional[List[str]] = None,
                      scope_names: Optional[List[str]] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Filter projects and scopes, then rebuild project totals.

    - search: case-insensitive substring of project name or status
    - project_ids: keep only these projects (empty = all)
    - scope_names: keep only these scope names (empty = all)

    Projects left without any scope are dropped.
    Returns (project_fin, scope_fin).
    """
    proj = projects
    if search and search.strip():
        needle = search.strip().lower()
        name_match = proj["name"].str.lower().str.contains(needle, regex=False)
        status_match = proj["status"].str.lower().str.contains(needle, regex=False)
        proj = proj[name_match | status_match]
    if project_ids:
        proj = proj[proj["id"].isin(project_ids)]

    scopes = scope_fin[scope_fin["project_id"].isin(proj["id"])]
    if scope_names:
        scopes = scopes[scopes["scope_name"].isin(scope_names)]

    proj = proj[proj["id"].isin(scopes["project_id"])]

    return project_financials(proj, scopes), scopes.reset_index(drop=True)


# =============================================================================
# DISTRIBUTIONS AND TOTALS
# =============================================================================

def scope_category(scope_name: str) -> str:
    """Bucket a scope name into Development / Design / Testing / Other."""
    for category, keywords in SCOPE_CATEGORIES:
        if any(k in scope_name for k in keywords):
            return category
    return SCOPE_CATEGORY_OTHER


def scope_distribution(scope_fin: pd.DataFrame) -> pd.DataFrame:
    """
    Share of hours per scope category as whole percentages.

    Categories with 0% are dropped.
    """
    columns = ["category", "percent", "color"]
    if len(scope_fin) == 0:
        return pd.DataFrame(columns=columns)

    buckets = scope_fin.assign(category=scope_fin["scope_name"].map(scope_category))
    totals = buckets.groupby("category")["hours"].sum()
    total_hours = totals.sum()
    if total_hours <= 0:
        return pd.DataFrame(columns=columns)

    order = [c for c, _ in SCOPE_CATEGORIES] + [SCOPE_CATEGORY_OTHER]
    rows = []
    for category in order:
        percent = int(round_half_up(totals.get(category, 0.0) / total_hours * 100))
        if percent > 0:
            rows.append({
                "category": category,
                "percent": percent,
                "color": SCOPE_CATEGORY_COLORS[category],
            })
    return pd.DataFrame(rows, columns=columns)


def time_by_project(scope_fin: pd.DataFrame) -> pd.DataFrame:
    """Hours and cost per project."""
    if len(scope_fin) == 0:
        return pd.DataFrame(columns=["project_name", "hours", "cost"])
    return (
        scope_fin.groupby(["project_id", "project_name"], sort=False)
        .agg(hours=("hours", "sum"), cost=("cost", "sum"))
        .reset_index()
        .drop(columns="project_id")
    )


def portfolio_totals(project_fin: pd.DataFrame) -> Dict[str, Any]:
    """
    Portfolio totals. Uses sale_amount as revenue when overrides were applied.
    """
    if len(project_fin) == 0:
        return {"hours": 0.0, "cost": 0.0, "revenue": 0.0, "profit": 0.0,
                "margin_pct": 0.0, "project_count": 0}

    revenue_col = "sale_amount" if "sale_amount" in project_fin.columns else "revenue"
    hours = float(project_fin["total_hours"].sum())
    cost = float(project_fin["cost"].sum())
    revenue = float(project_fin[revenue_col].sum())
    profit = revenue - cost

    return {
        "hours": hours,
        "cost": cost,
        "revenue": revenue,
        "profit": profit,
        "margin_pct": profit / revenue * 100 if revenue > 0 else 0.0,
        "project_count": int(len(project_fin)),
    }
