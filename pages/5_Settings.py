"""
Settings Page

Scope templates used when creating projects, and the default currency.
"""
import streamlit as st
import pandas as pd
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config, CURRENCY_OPTIONS, SETTING_DEFAULT_CURRENCY
from timetracker.data import schema
from timetracker.data.loader import get_storage, load_users, load_scope_templates, clear_caches
from timetracker.data.schema import SchemaValidationError
from timetracker.data.storage import StorageError
from timetracker.ui.components import render_user_picker, require_admin, report_error, empty_state
from timetracker.ui.state import init_state


st.set_page_config(page_title="Settings", page_icon="⚙️", layout="wide")

init_state()


# =============================================================================
# SCOPE TEMPLATES
# =============================================================================

def render_add_template():
    with st.form("add_template", clear_on_submit=True):
        name = st.text_input("Template name")
        description = st.text_input("Description")
        is_active = st.checkbox("Active", value=True)
        submitted = st.form_submit_button("Add Template", type="primary")

    if not submitted:
        return
    try:
        data = schema.validate_scope_template_insert({
            "name": name, "description": description, "is_active": is_active,
        })
        get_storage(str(config.db_path)).create_scope_template(data)
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return
    clear_caches()
    st.toast(f"Template '{name}' added")
    st.rerun()


def render_template_table(templates: pd.DataFrame):
    """Editable table; saves renames, descriptions and active toggles."""
    editable = templates[["id", "name", "description", "is_active"]].copy()
    editable["is_active"] = editable["is_active"].astype(bool)
    editable["delete"] = False

    edited = st.data_editor(
        editable,
        key="template_editor",
        hide_index=True,
        use_container_width=True,
        disabled=["id"],
        column_config={
            "id": None,
            "name": st.column_config.TextColumn("Name", required=True),
            "description": st.column_config.TextColumn("Description"),
            "is_active": st.column_config.CheckboxColumn("Active"),
            "delete": st.column_config.CheckboxColumn("Delete"),
        },
    )

    col1, col2, col3, _ = st.columns([1, 1, 1, 3])
    save = col1.button("💾 Save changes", type="primary")
    activate_all = col2.button("Activate all")
    deactivate_all = col3.button("Deactivate all")

    storage = get_storage(str(config.db_path))
    try:
        if activate_all or deactivate_all:
            updates = schema.validate_bulk_template_updates(
                [{"id": tid, "is_active": bool(activate_all)} for tid in templates["id"]]
            )
            storage.bulk_update_scope_templates(updates)
            st.toast("Templates activated" if activate_all else "Templates deactivated")
        elif save:
            original = editable.set_index("id")
            for row in edited.to_dict(orient="records"):
                if row["delete"]:
                    storage.delete_scope_template(row["id"])
                    continue
                before = original.loc[row["id"]]
                changes = {
                    k: row[k] for k in ("name", "description", "is_active")
                    if row[k] != before[k]
                }
                if changes:
                    storage.update_scope_template(
                        row["id"], schema.validate_scope_template_update(changes)
                    )
            st.toast("Templates saved")
        else:
            return
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return
    clear_caches()
    st.rerun()


# =============================================================================
# CURRENCY
# =============================================================================

def render_currency(user_id: str):
    storage = get_storage(str(config.db_path))
    current = storage.get_default_currency()
    codes = list(CURRENCY_OPTIONS.keys())

    with st.form("currency"):
        currency = st.selectbox(
            "Default currency",
            options=codes,
            index=codes.index(current) if current in codes else 0,
            format_func=lambda c: CURRENCY_OPTIONS[c][0],
        )
        submitted = st.form_submit_button("Save")

    if submitted and currency != current:
        try:
            storage.set_app_setting(schema.validate_setting({
                "key": SETTING_DEFAULT_CURRENCY,
                "value": currency,
                "description": "Currency used for rates, costs and revenue",
                "updated_by": user_id,
            }))
        except (SchemaValidationError, StorageError) as e:
            report_error(e)
            return
        clear_caches()
        st.toast(f"Default currency set to {currency}")
        st.rerun()


def main():
    db_path = str(config.db_path)
    user = render_user_picker(load_users(db_path))

    st.title("Settings")
    if not require_admin(user):
        return

    tab_templates, tab_currency = st.tabs(["Scope Templates", "Currency"])

    with tab_templates:
        st.caption("Active templates are offered as scopes when creating a project.")
        with st.expander("➕ New Template", expanded=False):
            render_add_template()

        templates = load_scope_templates(db_path)
        if len(templates) == 0:
            empty_state("No scope templates yet", icon="🧩")
        else:
            render_template_table(templates)

    with tab_currency:
        render_currency(user["id"])


if __name__ == "__main__":
    main()
