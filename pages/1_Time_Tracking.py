"""
Time Tracking Page

Live timer with start / pause / resume / cancel / complete, manual time
entry, and the acting user's most recent entries.
"""
import streamlit as st
import pandas as pd
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config
from timetracker.data import schema
from timetracker.data.loader import get_storage, load_users, load_projects, load_scopes, load_time_entries, clear_caches
from timetracker.data.schema import SchemaValidationError
from timetracker.data.storage import StorageError
from timetracker.metrics.overview import recent_entries
from timetracker.tracking.timer import Timer, TimerError, manual_minutes
from timetracker.ui.components import render_user_picker, report_error, empty_state
from timetracker.ui.formatting import fmt_duration, fmt_minutes, fmt_timestamp
from timetracker.ui.state import init_state, get_timer


st.set_page_config(page_title="Time Tracking", page_icon="⏱️", layout="wide")

init_state()


# =============================================================================
# SELECTION HELPERS
# =============================================================================

def project_options(projects: pd.DataFrame) -> dict:
    """Active projects as {id: name}."""
    if len(projects) == 0:
        return {}
    active = projects[projects["status"] == "active"]
    return dict(zip(active["id"], active["name"]))


def scope_options(scopes: pd.DataFrame, project_id: str) -> dict:
    if not project_id or len(scopes) == 0:
        return {}
    project_scopes = scopes[scopes["project_id"] == project_id]
    return dict(zip(project_scopes["id"], project_scopes["name"]))


def _index_of(options: dict, value: str) -> int:
    keys = list(options.keys())
    return keys.index(value) if value in keys else 0


def save_entry(payload: dict) -> bool:
    """Validate and store a time entry. Returns True on success."""
    try:
        data = schema.validate_time_entry_insert(payload)
        get_storage(str(config.db_path)).create_time_entry(data)
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return False
    clear_caches()
    return True


# =============================================================================
# LIVE TIMER
# =============================================================================

@st.fragment(run_every=1)
def render_elapsed(timer: Timer):
    """Elapsed time display that refreshes every second while tracking."""
    elapsed = timer.elapsed_seconds()
    if timer.state.is_tracking:
        st.markdown(f"## 🔴 {fmt_duration(elapsed)}")
    elif timer.state.is_paused:
        st.markdown(f"## ⏸️ {fmt_duration(elapsed)}")
    else:
        st.markdown(f"## {fmt_duration(0)}")


def render_timer(user_id: str, projects: dict, scopes: pd.DataFrame):
    timer = get_timer(user_id)
    state = timer.state

    if not projects:
        empty_state("No active projects to track time against", icon="📁")
        return

    locked = state.is_tracking or state.is_paused

    col1, col2 = st.columns(2)
    with col1:
        project_id = st.selectbox(
            "Project",
            options=list(projects.keys()),
            index=_index_of(projects, state.project_id),
            format_func=lambda pid: projects.get(pid, pid),
            disabled=locked,
            key="timer_project",
        )
    scopes_for_project = scope_options(scopes, project_id)
    with col2:
        scope_id = st.selectbox(
            "Scope",
            options=list(scopes_for_project.keys()),
            index=_index_of(scopes_for_project, state.scope_id),
            format_func=lambda sid: scopes_for_project.get(sid, sid),
            disabled=locked or not scopes_for_project,
            placeholder="No scopes on this project",
            key="timer_scope",
        )
    description = st.text_input("What are you working on?", value=state.description,
                                key="timer_description")

    # Selection is locked once time accrues
    if locked:
        timer.set_description(description)
    else:
        timer.select(project_id or "", scope_id or "", description)

    render_elapsed(timer)

    cols = st.columns(4)
    try:
        if state.is_tracking:
            if cols[0].button("⏸️ Pause", use_container_width=True):
                timer.pause()
                st.rerun()
        elif state.is_paused:
            if cols[0].button("▶️ Resume", use_container_width=True):
                timer.start()
                st.rerun()
        else:
            if cols[0].button("▶️ Start", type="primary", use_container_width=True):
                timer.start()
                st.rerun()

        if cols[1].button("✖️ Cancel", use_container_width=True, disabled=state.is_idle):
            timer.cancel()
            st.toast("Timer cancelled")
            st.rerun()

        if cols[2].button("✅ Complete", use_container_width=True, disabled=state.is_idle):
            payload = timer.complete(user_id)
            if save_entry(payload):
                timer.reset()
                st.toast(f"Logged {fmt_minutes(payload['minutes'])}")
                st.rerun()
    except TimerError as e:
        st.error(str(e))


# =============================================================================
# MANUAL ENTRY
# =============================================================================

def render_manual_entry(user_id: str, projects: dict, scopes: pd.DataFrame):
    if not projects:
        empty_state("No active projects to log time against", icon="📁")
        return

    project_id = st.selectbox(
        "Project",
        options=list(projects.keys()),
        format_func=lambda pid: projects.get(pid, pid),
        key="manual_project",
    )
    scopes_for_project = scope_options(scopes, project_id)

    with st.form("manual_entry", clear_on_submit=True):
        scope_id = st.selectbox(
            "Scope",
            options=list(scopes_for_project.keys()),
            format_func=lambda sid: scopes_for_project.get(sid, sid),
        )
        col1, col2 = st.columns(2)
        with col1:
            hours = st.number_input("Hours", min_value=0, max_value=24, step=1, value=0)
        with col2:
            minutes = st.number_input("Minutes", min_value=0, max_value=59, step=5, value=0)
        description = st.text_area("Description")
        submitted = st.form_submit_button("Log Time", type="primary")

    if submitted:
        total = manual_minutes(hours, minutes)
        if not scope_id or total <= 0:
            st.error("Please select a project and scope, and enter a duration.")
            return
        if save_entry({
            "user_id": user_id,
            "project_id": project_id,
            "scope_id": scope_id,
            "description": description,
            "minutes": total,
            "entry_type": "manual",
        }):
            st.toast(f"Logged {fmt_minutes(total)}")
            st.rerun()


# =============================================================================
# RECENT ENTRIES
# =============================================================================

def render_recent_entries(user_id: str, entries: pd.DataFrame):
    st.subheader("Recent Entries")
    recent = recent_entries(entries, n=5)
    if len(recent) == 0:
        st.info("No time entries yet")
        return

    for entry in recent.to_dict(orient="records"):
        col1, col2, col3 = st.columns([5, 2, 1])
        with col1:
            st.markdown(f"**{entry['project_name']}** · {entry['scope_name']}")
            if entry.get("description"):
                st.caption(entry["description"])
        with col2:
            st.markdown(fmt_minutes(entry["minutes"]))
            st.caption(f"{entry['entry_type']} · {fmt_timestamp(entry['created_at'])}")
        with col3:
            if entry["user_id"] == user_id and st.button("🗑️", key=f"delete_{entry['id']}",
                                                         help="Delete entry"):
                get_storage(str(config.db_path)).delete_time_entry(entry["id"])
                clear_caches()
                st.toast("Entry deleted")
                st.rerun()


def main():
    db_path = str(config.db_path)
    user = render_user_picker(load_users(db_path))

    st.title("Time Tracking")
    if user is None:
        return

    projects = project_options(load_projects(db_path))
    scopes = load_scopes(db_path)

    tab_timer, tab_manual = st.tabs(["⏱️ Timer", "✍️ Manual Entry"])
    with tab_timer:
        render_timer(user["id"], projects, scopes)
    with tab_manual:
        render_manual_entry(user["id"], projects, scopes)

    st.markdown("---")
    render_recent_entries(user["id"], load_time_entries(db_path, user_id=user["id"]))


if __name__ == "__main__":
    main()
