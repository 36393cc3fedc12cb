"""
Projects Page

Create, edit and delete projects with their scopes and team members.
Members carry per-project cost and selling rates.
"""
import streamlit as st
import pandas as pd
from pathlib import Path
from typing import List, Optional
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config, PROJECT_STATUSES
from timetracker.data import schema
from timetracker.data.loader import (
    get_storage, load_users, load_projects, load_scopes, load_scope_templates,
    load_members, load_time_entries, clear_caches,
)
from timetracker.data.schema import SchemaValidationError
from timetracker.data.storage import StorageError
from timetracker.ui.components import (
    render_user_picker, report_error, project_card, status_badge, empty_state,
)
from timetracker.ui.state import init_state, get_state, set_state


st.set_page_config(page_title="Projects", page_icon="📁", layout="wide")

init_state()


def parse_custom_scopes(text: str) -> List[str]:
    """One scope name per line; blanks and duplicates dropped."""
    names = []
    for line in (text or "").splitlines():
        name = line.strip()
        if name and name not in names:
            names.append(name)
    return names


def member_editor_frame(users: pd.DataFrame, members: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    One row per user for the member editor.

    Existing members start included with their project rates; everyone else
    starts excluded with their base rates.
    """
    df = pd.DataFrame({
        "user_id": users["id"],
        "name": users["name"],
        "include": False,
        "cost_rate": pd.to_numeric(users["base_cost_rate"], errors="coerce").fillna(0.0),
        "selling_rate": pd.to_numeric(users["base_selling_rate"], errors="coerce").fillna(0.0),
    })
    if members is not None and len(members):
        rates = members.set_index("user_id")
        in_project = df["user_id"].isin(rates.index)
        df.loc[in_project, "include"] = True
        df.loc[in_project, "cost_rate"] = df.loc[in_project, "user_id"].map(rates["cost_rate"])
        df.loc[in_project, "selling_rate"] = df.loc[in_project, "user_id"].map(rates["selling_rate"])
    return df.reset_index(drop=True)


def edit_members(key: str, frame: pd.DataFrame) -> pd.DataFrame:
    return st.data_editor(
        frame,
        key=key,
        hide_index=True,
        use_container_width=True,
        disabled=["user_id", "name"],
        column_config={
            "user_id": None,
            "name": st.column_config.TextColumn("Team Member"),
            "include": st.column_config.CheckboxColumn("Assigned"),
            "cost_rate": st.column_config.NumberColumn("Cost Rate", min_value=0.0, format="%.2f"),
            "selling_rate": st.column_config.NumberColumn("Selling Rate", min_value=0.0, format="%.2f"),
        },
    )


# =============================================================================
# CREATE
# =============================================================================

def render_create_form(user: dict, users: pd.DataFrame, templates: pd.DataFrame):
    active_templates = templates[templates["is_active"].astype(bool)] if len(templates) else templates
    template_names = dict(zip(active_templates["id"], active_templates["name"]))

    with st.form("create_project", clear_on_submit=True):
        name = st.text_input("Project name")
        description = st.text_area("Description")
        status = st.selectbox("Status", PROJECT_STATUSES)

        template_ids = st.multiselect(
            "Scopes from templates",
            options=list(template_names.keys()),
            format_func=lambda tid: template_names.get(tid, tid),
        )
        custom_scopes = st.text_area("Custom scopes (one per line)")

        st.markdown("**Team members**")
        member_rows = edit_members("create_members", member_editor_frame(users))

        submitted = st.form_submit_button("Create Project", type="primary")

    if not submitted:
        return

    storage = get_storage(str(config.db_path))
    try:
        data = schema.validate_project_insert({
            "name": name,
            "description": description,
            "status": status,
            "created_by_id": user["id"],
        })
        project = storage.create_project(data)
        if template_ids:
            storage.apply_scope_templates(project["id"], template_ids)
        for scope_name in parse_custom_scopes(custom_scopes):
            storage.create_project_scope(
                schema.validate_scope_insert({"project_id": project["id"], "name": scope_name})
            )
        for row in member_rows[member_rows["include"]].to_dict(orient="records"):
            storage.add_project_member(schema.validate_member_insert({
                "project_id": project["id"],
                "user_id": row["user_id"],
                "cost_rate": row["cost_rate"],
                "selling_rate": row["selling_rate"],
            }))
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return
    finally:
        clear_caches()

    st.toast(f"Project '{project['name']}' created")
    st.rerun()


# =============================================================================
# EDIT
# =============================================================================

def sync_members(project_id: str, current: pd.DataFrame, edited: pd.DataFrame):
    """Apply member editor changes: add, update rates, remove."""
    storage = get_storage(str(config.db_path))
    existing = current.set_index("user_id") if len(current) else pd.DataFrame()

    for row in edited.to_dict(orient="records"):
        uid = row["user_id"]
        is_member = uid in existing.index
        if row["include"] and not is_member:
            storage.add_project_member(schema.validate_member_insert({
                "project_id": project_id,
                "user_id": uid,
                "cost_rate": row["cost_rate"],
                "selling_rate": row["selling_rate"],
            }))
        elif row["include"] and is_member:
            member = existing.loc[uid]
            if (float(member["cost_rate"]) != float(row["cost_rate"])
                    or float(member["selling_rate"]) != float(row["selling_rate"])):
                storage.update_project_member(member["id"], schema.validate_member_update({
                    "cost_rate": row["cost_rate"],
                    "selling_rate": row["selling_rate"],
                }))
        elif not row["include"] and is_member:
            storage.remove_project_member(existing.loc[uid, "id"])


def render_edit_form(project: dict, users: pd.DataFrame, scopes: pd.DataFrame,
                     members: pd.DataFrame):
    project_scopes = scopes[scopes["project_id"] == project["id"]] if len(scopes) else scopes
    project_members = members[members["project_id"] == project["id"]] if len(members) else members
    scope_names = dict(zip(project_scopes["id"], project_scopes["name"]))

    with st.form(f"edit_project_{project['id']}"):
        name = st.text_input("Project name", value=project["name"])
        description = st.text_area("Description", value=project.get("description") or "")
        status = st.selectbox(
            "Status", PROJECT_STATUSES,
            index=PROJECT_STATUSES.index(project["status"]) if project["status"] in PROJECT_STATUSES else 0,
        )
        keep_scopes = st.multiselect(
            "Scopes",
            options=list(scope_names.keys()),
            default=list(scope_names.keys()),
            format_func=lambda sid: scope_names.get(sid, sid),
            help="Removing a scope also deletes the time logged against it.",
        )
        new_scopes = st.text_area("Add scopes (one per line)")

        st.markdown("**Team members**")
        member_rows = edit_members(
            f"edit_members_{project['id']}",
            member_editor_frame(users, project_members),
        )

        col1, col2 = st.columns(2)
        saved = col1.form_submit_button("Save", type="primary")
        cancelled = col2.form_submit_button("Cancel")

    if cancelled:
        set_state("editing_project_id", None)
        st.rerun()
    if not saved:
        return

    storage = get_storage(str(config.db_path))
    try:
        storage.update_project(project["id"], schema.validate_project_update({
            "name": name, "description": description, "status": status,
        }))
        for scope_id in scope_names:
            if scope_id not in keep_scopes:
                storage.delete_project_scope(scope_id)
        existing_names = {scope_names[sid] for sid in keep_scopes}
        for scope_name in parse_custom_scopes(new_scopes):
            if scope_name not in existing_names:
                storage.create_project_scope(
                    schema.validate_scope_insert({"project_id": project["id"], "name": scope_name})
                )
        sync_members(project["id"], project_members, member_rows)
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return
    finally:
        clear_caches()

    set_state("editing_project_id", None)
    st.toast("Project updated")
    st.rerun()


# =============================================================================
# LIST
# =============================================================================

def render_project_list(projects: pd.DataFrame, entries: pd.DataFrame, scopes: pd.DataFrame,
                        members: pd.DataFrame, users: pd.DataFrame, is_admin: bool):
    if len(projects) == 0:
        empty_state("No projects yet", icon="📁")
        return

    editing = get_state("editing_project_id")
    storage = get_storage(str(config.db_path))

    for project in projects.to_dict(orient="records"):
        if editing == project["id"]:
            st.subheader(f"Edit: {project['name']}")
            render_edit_form(project, users, scopes, members)
            continue

        project_card(project, entries, scopes)
        team = members[members["project_id"] == project["id"]] if len(members) else members
        if len(team):
            st.caption("Team: " + ", ".join(team["user_name"].astype(str)))

        if is_admin:
            col1, col2, _ = st.columns([1, 1, 6])
            if col1.button("✏️ Edit", key=f"edit_{project['id']}"):
                set_state("editing_project_id", project["id"])
                st.rerun()
            if col2.button("🗑️ Delete", key=f"delete_{project['id']}"):
                storage.delete_project(project["id"])
                clear_caches()
                st.toast(f"Project '{project['name']}' deleted")
                st.rerun()


def main():
    db_path = str(config.db_path)
    users = load_users(db_path)
    user = render_user_picker(users)

    st.title("Projects")
    if user is None:
        return
    is_admin = user["role"] == "admin"

    projects = load_projects(db_path)
    status_filter = st.selectbox("Status", ["all"] + PROJECT_STATUSES,
                                 format_func=lambda s: "All" if s == "all" else status_badge(s))
    if status_filter != "all" and len(projects):
        projects = projects[projects["status"] == status_filter]

    if is_admin:
        with st.expander("➕ New Project", expanded=False):
            render_create_form(user, users, load_scope_templates(db_path))

    render_project_list(
        projects,
        load_time_entries(db_path),
        load_scopes(db_path),
        load_members(db_path),
        users,
        is_admin,
    )


if __name__ == "__main__":
    main()
