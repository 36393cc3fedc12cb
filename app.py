"""
Project Time Tracking & Billing OS

Main entry point for Streamlit app (Dashboard).
"""
import streamlit as st
from pathlib import Path

# Page config must be first Streamlit command
st.set_page_config(
    page_title="Time Tracking & Billing",
    page_icon="⏱️",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Add package root to path
import sys
sys.path.insert(0, str(Path(__file__).parent))

from timetracker.config import config, configure_logging
from timetracker.data.loader import get_storage, load_all, clear_caches
from timetracker.data.seed import seed_sample_data
from timetracker.metrics.overview import dashboard_summary, recent_entries
from timetracker.ui.components import (
    kpi_strip, render_user_picker, project_card, entries_table, empty_state,
)
from timetracker.ui.state import init_state

configure_logging()


def ensure_seeded(db_path: str):
    """Seed demo data the first time the app runs against an empty database."""
    storage = get_storage(db_path)
    if not storage.get_users():
        summary = seed_sample_data(storage)
        clear_caches()
        if summary:
            st.toast("Sample data created")


def main():
    """Main app entry point."""

    init_state()
    db_path = str(config.db_path)
    ensure_seeded(db_path)

    data = load_all(db_path)
    user = render_user_picker(data["users"])

    st.title("Dashboard")
    if user is not None:
        st.caption(f"Welcome back, {user['name']}")

    summary = dashboard_summary(data["projects"], data["entries"], data["users"])
    currency = get_storage(db_path).get_default_currency()

    kpi_strip(
        {
            "Active Projects": summary["active_projects"],
            "Total Hours": summary["total_hours"],
            "Team Members": summary["team_members"],
            "Est. Revenue": summary["estimated_revenue"],
        },
        format_map={
            "Active Projects": "count",
            "Total Hours": "hours",
            "Team Members": "count",
            "Est. Revenue": "currency",
        },
        currency=currency,
    )
    st.caption(
        f"Estimated revenue uses the average base selling rate of all users "
        f"({summary['avg_selling_rate']:,.2f}/hr)."
    )

    st.markdown("---")
    left, right = st.columns([3, 2])

    with left:
        st.subheader("Recent Time Entries")
        entries_table(recent_entries(data["entries"], n=10), show_user=True)

    with right:
        st.subheader("Projects")
        projects = data["projects"]
        if len(projects) == 0:
            empty_state("No projects yet", icon="📁")
        for project in projects.to_dict(orient="records"):
            project_card(project, data["entries"], data["scopes"])


if __name__ == "__main__":
    main()
