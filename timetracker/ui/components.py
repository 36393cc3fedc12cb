"""
Reusable UI components and blocks.
"""
import streamlit as st
import pandas as pd
from typing import Optional, List, Dict, Any

from timetracker.config import ROLE_LABELS
from timetracker.metrics.overview import project_progress
from timetracker.ui.formatting import (
    fmt_currency, fmt_hours, fmt_percent, fmt_rate, fmt_count, format_metric_df,
)
from timetracker.ui.state import get_current_user_id, set_current_user_id


def kpi_strip(metrics: Dict[str, Any],
              format_map: Optional[Dict[str, str]] = None,
              currency: str = "USD"):
    """
    Render horizontal strip of KPI cards.

    Args:
        metrics: Dict of {label: value}
        format_map: Dict of {label: format_type} where format_type is
                    'currency', 'hours', 'percent', 'rate', 'count', 'text'
        currency: Currency code for 'currency' and 'rate' values
    """
    if format_map is None:
        format_map = {}

    cols = st.columns(len(metrics))

    formatters = {
        "currency": lambda x: fmt_currency(x, currency),
        "hours": fmt_hours,
        "percent": fmt_percent,
        "rate": lambda x: fmt_rate(x, currency),
        "count": fmt_count,
        "text": lambda x: str(x) if pd.notna(x) else "—",
    }

    for i, (label, value) in enumerate(metrics.items()):
        with cols[i]:
            fmt_type = format_map.get(label, "currency")
            formatter = formatters.get(fmt_type, str)
            formatted = formatter(value) if pd.notna(value) else "—"
            st.metric(label=label, value=formatted)


def role_badge(role: str) -> str:
    """Emoji + label for a user role."""
    badges = {
        "admin": "🛡️",
        "regular": "👤",
    }
    return f"{badges.get(role, '⚪')} {ROLE_LABELS.get(role, role)}"


def status_badge(status: str) -> str:
    """Emoji + label for a project status."""
    badges = {
        "active": "🟢",
        "paused": "🟡",
        "completed": "🔵",
    }
    return f"{badges.get(status, '⚪')} {str(status).title()}"


# =============================================================================
# ACTING USER
# =============================================================================

def render_user_picker(users: pd.DataFrame) -> Optional[Dict[str, Any]]:
    """
    Sidebar selector for the user the app acts as.

    Returns the selected user as a dict, or None when there are no users.
    """
    if len(users) == 0:
        st.sidebar.warning("No users yet. Seed the database or add a user on the Team page.")
        return None

    ids = users["id"].tolist()
    labels = {
        row["id"]: f"{row['name']} ({ROLE_LABELS.get(row['role'], row['role'])})"
        for _, row in users.iterrows()
    }

    current = get_current_user_id()
    if current not in ids:
        admins = users[users["role"] == "admin"]
        current = admins["id"].iloc[0] if len(admins) else ids[0]

    selected = st.sidebar.selectbox(
        "Acting as",
        options=ids,
        index=ids.index(current),
        format_func=lambda uid: labels.get(uid, uid),
    )
    set_current_user_id(selected)
    return users[users["id"] == selected].iloc[0].to_dict()


def require_admin(user: Optional[Dict[str, Any]]) -> bool:
    """Warn and return False unless the acting user is an admin."""
    if user is None:
        st.warning("Select a user in the sidebar to continue.")
        return False
    if user.get("role") != "admin":
        st.warning("Only Project Managers can access this page.")
        return False
    return True


# =============================================================================
# BLOCKS
# =============================================================================

def project_card(project: Dict[str, Any],
                 entries: pd.DataFrame,
                 scopes: pd.DataFrame):
    """Project name, status and per-scope progress bars."""
    with st.container(border=True):
        st.markdown(f"**{project['name']}**  \n{status_badge(project['status'])}")
        if project.get("description"):
            st.caption(project["description"])

        progress = project_progress(project["id"], entries, scopes)
        if len(progress) == 0:
            st.caption("No scopes defined")
            return

        for _, row in progress.iterrows():
            st.progress(
                int(row["progress"]) / 100,
                text=f"{row['scope_name']}: {int(row['progress'])}%",
            )


def metric_table(df: pd.DataFrame,
                 columns: Optional[List[str]] = None,
                 currency: str = "USD",
                 empty_message: str = "No data"):
    """Formatted, read-only metrics table."""
    if len(df) == 0:
        st.info(empty_message)
        return
    view = df[columns] if columns else df
    st.dataframe(format_metric_df(view, currency), use_container_width=True, hide_index=True)


def entries_table(entries: pd.DataFrame, show_user: bool = False):
    """Time entries with project, scope, duration and type."""
    columns = ["created_at", "project_name", "scope_name", "description", "minutes", "entry_type"]
    if show_user:
        columns.insert(1, "user_name")
    metric_table(entries, columns, empty_message="No time entries yet")


def empty_state(message: str, icon: str = "📭"):
    """Render empty state."""
    col1, col2, col3 = st.columns([1, 2, 1])

    with col2:
        st.markdown(f"### {icon}")
        st.markdown(f"**{message}**")


def report_error(error: Exception):
    """Show a failed write to the user."""
    details = getattr(error, "errors", None)
    if details:
        st.error("Invalid data: " + "; ".join(details))
    else:
        st.error(str(error))
