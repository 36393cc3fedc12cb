"""
Analytics Page

Profitability by project, scope and team member, with sale amount and
rate overrides, charts, and PDF / CSV exports.
"""
import streamlit as st
import pandas as pd
from datetime import datetime, timezone
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config
from timetracker.data.loader import get_storage, load_all
from timetracker.exports import (
    export_dataframe_csv, export_dataframe_excel, export_time_entries_csv,
    export_project_report_pdf,
)
from timetracker.metrics.financials import (
    scope_financials, team_financials, filter_financials, apply_sale_overrides,
    apply_rate_overrides, scope_distribution, time_by_project, portfolio_totals,
)
from timetracker.metrics.overview import monthly_hours, entry_dates
from timetracker.ui.charts import (
    time_by_project_bar, scope_distribution_pie, monthly_hours_chart, revenue_cost_bar,
)
from timetracker.ui.components import kpi_strip, metric_table, render_user_picker, require_admin, empty_state
from timetracker.ui.formatting import fmt_currency, fmt_percent
from timetracker.ui.state import (
    init_state, get_state, set_state, get_analytics_filters, clear_analytics_filters,
    get_sale_overrides, set_sale_override, get_rate_overrides, set_rate_override,
    selected_names,
)


st.set_page_config(page_title="Analytics", page_icon="📈", layout="wide")

init_state()


# =============================================================================
# FILTERS
# =============================================================================

def render_filters(projects: pd.DataFrame, scope_fin: pd.DataFrame):
    project_names = dict(zip(projects["id"], projects["name"]))
    scope_names = sorted(scope_fin["scope_name"].dropna().unique().tolist()) if len(scope_fin) else []

    # Drop selections that no longer exist before the widgets read them
    set_state("selected_projects", selected_names(list(project_names), get_state("selected_projects")))
    set_state("selected_scopes", selected_names(scope_names, get_state("selected_scopes")))

    col1, col2, col3, col4 = st.columns([2, 2, 2, 1])
    with col1:
        st.text_input("Search projects", key="analytics_search", placeholder="Project name")
    with col2:
        st.multiselect(
            "Projects",
            options=list(project_names.keys()),
            format_func=lambda pid: project_names.get(pid, pid),
            key="selected_projects",
        )
    with col3:
        st.multiselect("Scopes", options=scope_names, key="selected_scopes")
    with col4:
        st.write("")
        st.button("Clear filters", on_click=clear_analytics_filters)


# =============================================================================
# PROJECT BREAKDOWN
# =============================================================================

def reset_sale_amount(project_id: str):
    set_sale_override(project_id, None)
    st.session_state.pop(f"sale_{project_id}", None)


def render_project_detail(project: dict, scope_fin: pd.DataFrame, team_fin: pd.DataFrame,
                          currency: str):
    pid = project["project_id"]
    project_scopes = scope_fin[scope_fin["project_id"] == pid]
    project_team = team_fin[team_fin["project_id"] == pid]

    col1, col2, col3 = st.columns(3)
    with col1:
        amount = st.number_input(
            "Sale amount",
            min_value=0.0,
            value=float(project["sale_amount"]),
            step=100.0,
            key=f"sale_{pid}",
            help=f"Computed from selling rates: {fmt_currency(project['computed_revenue'], currency)}",
        )
        if amount > 0 and amount != project["sale_amount"]:
            set_sale_override(pid, amount)
            st.rerun()
        if pid in get_sale_overrides():
            st.button("Reset to computed", key=f"reset_sale_{pid}",
                      on_click=reset_sale_amount, args=(pid,))
    with col2:
        st.metric("Profit", fmt_currency(project["profit"], currency))
    with col3:
        st.metric("Margin", fmt_percent(project["margin_pct"]))

    st.markdown("**Team**")
    if len(project_team) == 0:
        st.info("No team members on this project")
    else:
        edited = st.data_editor(
            project_team[["user_id", "name", "role", "hours", "rate", "cost"]],
            key=f"rates_{pid}",
            hide_index=True,
            use_container_width=True,
            disabled=["user_id", "name", "role", "hours", "cost"],
            column_config={
                "user_id": None,
                "name": st.column_config.TextColumn("Team Member"),
                "role": st.column_config.TextColumn("Role"),
                "hours": st.column_config.NumberColumn("Hours", format="%.2f"),
                "rate": st.column_config.NumberColumn("Rate", min_value=0.0, format="%.2f"),
                "cost": st.column_config.NumberColumn("Cost", format="%.0f"),
            },
        )
        changed = edited[edited["rate"] != project_team["rate"].values]
        if len(changed):
            for row in changed.to_dict(orient="records"):
                set_rate_override(pid, row["user_id"], row["rate"])
            st.rerun()

    st.markdown("**Scopes**")
    metric_table(project_scopes, ["scope_name", "hours", "cost", "revenue", "profit"],
                 currency, empty_message="No scopes on this project")

    pdf_bytes, filename = export_project_report_pdf(project, project_scopes, project_team, currency)
    st.download_button(
        "📄 Download PDF report",
        data=pdf_bytes,
        file_name=filename,
        mime="application/pdf",
        key=f"pdf_{pid}",
    )


def main():
    db_path = str(config.db_path)
    data = load_all(db_path)
    user = render_user_picker(data["users"])

    st.title("Analytics")
    if not require_admin(user):
        return

    projects = data["projects"]
    if len(projects) == 0:
        empty_state("No projects to analyse yet", icon="📈")
        return

    currency = get_storage(db_path).get_default_currency()
    scope_fin_all = scope_financials(projects, data["scopes"], data["entries"], data["members"])

    render_filters(projects, scope_fin_all)
    filters = get_analytics_filters()

    project_fin, scope_fin = filter_financials(
        projects, scope_fin_all,
        search=filters["search"],
        project_ids=filters["project_ids"],
        scope_names=filters["scope_names"],
    )
    project_fin = apply_sale_overrides(project_fin, get_sale_overrides())
    team_fin = apply_rate_overrides(
        team_financials(projects, data["entries"], data["members"], filters["scope_names"]),
        get_rate_overrides(),
    )
    team_fin = team_fin[team_fin["project_id"].isin(project_fin["project_id"])]

    if len(project_fin) == 0:
        st.info("No projects match the current filters")
        return

    totals = portfolio_totals(project_fin)
    kpi_strip(
        {
            "Total Hours": totals["hours"],
            "Revenue": totals["revenue"],
            "Cost": totals["cost"],
            "Profit": totals["profit"],
            "Margin": totals["margin_pct"],
        },
        format_map={"Total Hours": "hours", "Margin": "percent"},
        currency=currency,
    )

    st.markdown("---")

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(time_by_project_bar(time_by_project(scope_fin)), use_container_width=True)
    with col2:
        distribution = scope_distribution(scope_fin)
        if len(distribution):
            st.plotly_chart(scope_distribution_pie(distribution), use_container_width=True)
        else:
            st.info("No time logged yet")

    entries = data["entries"]
    entries = entries[entries["project_id"].isin(project_fin["project_id"])]
    years = sorted(entry_dates(entries).dt.year.dropna().astype(int).unique().tolist(), reverse=True)
    this_year = datetime.now(timezone.utc).year
    if this_year not in years:
        years.insert(0, this_year)

    col1, col2 = st.columns(2)
    with col1:
        year = st.selectbox("Year", years, key="analytics_year")
        st.plotly_chart(monthly_hours_chart(monthly_hours(entries, year), year),
                        use_container_width=True)
    with col2:
        st.plotly_chart(revenue_cost_bar(project_fin), use_container_width=True)

    st.markdown("---")
    st.subheader("Projects")
    metric_table(
        project_fin,
        ["project_name", "status", "total_hours", "computed_revenue", "sale_amount",
         "cost", "profit", "margin_pct"],
        currency,
    )

    for project in project_fin.to_dict(orient="records"):
        with st.expander(f"{project['project_name']} · {fmt_currency(project['profit'], currency)} profit"):
            render_project_detail(project, scope_fin, team_fin, currency)

    st.markdown("---")
    st.subheader("Export")
    col1, col2, col3 = st.columns(3)
    with col1:
        csv_bytes, csv_name = export_dataframe_csv(project_fin, "project_profitability.csv")
        st.download_button("⬇️ Projects (CSV)", csv_bytes, csv_name, mime="text/csv")
    with col2:
        xlsx_bytes, xlsx_name = export_dataframe_excel(scope_fin, "scope_profitability.xlsx",
                                                       sheet_name="Scopes")
        st.download_button(
            "⬇️ Scopes (Excel)", xlsx_bytes, xlsx_name,
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    with col3:
        entry_bytes, entry_name = export_time_entries_csv(entries)
        st.download_button("⬇️ Time entries (CSV)", entry_bytes, entry_name, mime="text/csv")


if __name__ == "__main__":
    main()
