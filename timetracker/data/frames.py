"""
Storage rows -> DataFrames for the metrics layer.
"""
import pandas as pd
from typing import Optional, Dict, List, Any, Sequence

from timetracker.data.storage import Storage


USER_COLUMNS = ["id", "username", "role", "name", "email",
                "base_cost_rate", "base_selling_rate", "created_at"]
PROJECT_COLUMNS = ["id", "name", "description", "status", "created_by_id",
                   "created_at", "updated_at"]
SCOPE_COLUMNS = ["id", "project_id", "name", "created_at"]
TEMPLATE_COLUMNS = ["id", "name", "description", "is_active", "created_at", "updated_at"]
MEMBER_COLUMNS = ["id", "project_id", "user_id", "cost_rate", "selling_rate",
                  "assigned_at", "user_name", "username", "email", "role",
                  "base_cost_rate", "base_selling_rate"]
ENTRY_COLUMNS = ["id", "user_id", "project_id", "scope_id", "description", "minutes",
                 "entry_type", "started_at", "ended_at", "created_at",
                 "project_name", "scope_name", "user_name"]


def to_frame(rows: List[Dict[str, Any]], columns: Sequence[str]) -> pd.DataFrame:
    """Build a DataFrame with a fixed column set, even when there are no rows."""
    rows = [r for r in rows if r is not None]
    if not rows:
        return pd.DataFrame(columns=list(columns))
    df = pd.DataFrame(rows)
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df[list(columns)]


def members_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    df = to_frame(rows, MEMBER_COLUMNS)
    for col in ["cost_rate", "selling_rate", "base_cost_rate", "base_selling_rate"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def entries_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    df = to_frame(rows, ENTRY_COLUMNS)
    df["minutes"] = pd.to_numeric(df["minutes"], errors="coerce").fillna(0).astype(int)
    return df


def storage_frames(storage: Storage, project_id: Optional[str] = None) -> Dict[str, pd.DataFrame]:
    """
    Projects, scopes, members and entries as frames.

    With project_id only that project's rows are loaded.
    """
    if project_id:
        return {
            "projects": to_frame([storage.get_project(project_id)], PROJECT_COLUMNS),
            "scopes": to_frame(storage.get_project_scopes(project_id), SCOPE_COLUMNS),
            "members": members_frame(storage.get_project_members(project_id)),
            "entries": entries_frame(storage.get_time_entries(project_id=project_id)),
        }
    return {
        "users": to_frame(storage.get_users(), USER_COLUMNS),
        "projects": to_frame(storage.get_projects(), PROJECT_COLUMNS),
        "scopes": to_frame(storage.get_all_project_scopes(), SCOPE_COLUMNS),
        "members": members_frame(storage.get_project_members()),
        "entries": entries_frame(storage.get_time_entries()),
    }
