"""
Team Page

Add, edit and remove users, their roles and base rates.
"""
import streamlit as st
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config, USER_ROLES, ROLE_LABELS
from timetracker.data import schema
from timetracker.data.loader import get_storage, load_users, load_time_entries, clear_caches
from timetracker.data.schema import SchemaValidationError
from timetracker.data.storage import StorageError
from timetracker.metrics.overview import hours_by_user
from timetracker.ui.charts import hours_by_user_bar
from timetracker.ui.components import render_user_picker, require_admin, report_error, role_badge
from timetracker.ui.formatting import fmt_rate, fmt_timestamp
from timetracker.ui.state import init_state


st.set_page_config(page_title="Team", page_icon="👥", layout="wide")

init_state()


def render_add_user(currency: str):
    with st.form("add_user", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            username = st.text_input("Username")
            name = st.text_input("Full name")
            role = st.selectbox("Role", USER_ROLES, index=USER_ROLES.index("regular"),
                                format_func=lambda r: ROLE_LABELS.get(r, r))
        with col2:
            password = st.text_input("Password", type="password")
            email = st.text_input("Email")
            rate_col1, rate_col2 = st.columns(2)
            cost_rate = rate_col1.number_input(f"Base cost rate ({currency})", min_value=0.01,
                                               value=float(config.default_cost_rate))
            selling_rate = rate_col2.number_input(f"Base selling rate ({currency})", min_value=0.01,
                                                  value=float(config.default_selling_rate))
        submitted = st.form_submit_button("Add User", type="primary")

    if not submitted:
        return
    try:
        data = schema.validate_user_insert({
            "username": username,
            "password": password,
            "name": name,
            "email": email,
            "role": role,
            "base_cost_rate": cost_rate,
            "base_selling_rate": selling_rate,
        })
        created = get_storage(str(config.db_path)).create_user(data)
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return
    clear_caches()
    st.toast(f"Added {created['name']}")
    st.rerun()


def render_edit_user(member: dict, acting_user_id: str):
    with st.form(f"edit_user_{member['id']}"):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Full name", value=member["name"])
            email = st.text_input("Email", value=member.get("email") or "")
            role = st.selectbox("Role", USER_ROLES, index=USER_ROLES.index(member["role"]),
                                format_func=lambda r: ROLE_LABELS.get(r, r))
        with col2:
            cost_rate = st.number_input("Base cost rate", min_value=0.01,
                                        value=float(member["base_cost_rate"] or config.default_cost_rate))
            selling_rate = st.number_input("Base selling rate", min_value=0.01,
                                           value=float(member["base_selling_rate"] or config.default_selling_rate))
        col_save, col_delete = st.columns(2)
        saved = col_save.form_submit_button("Save")
        deleted = col_delete.form_submit_button(
            "Delete User", disabled=member["id"] == acting_user_id,
            help="Also deletes the projects this user created and their time entries.",
        )

    storage = get_storage(str(config.db_path))
    try:
        if saved:
            storage.update_user(member["id"], schema.validate_user_update({
                "name": name,
                "email": email,
                "role": role,
                "base_cost_rate": cost_rate,
                "base_selling_rate": selling_rate,
            }))
            st.toast(f"Updated {name}")
        elif deleted:
            storage.delete_user(member["id"])
            st.toast(f"Removed {member['name']}")
        else:
            return
    except (SchemaValidationError, StorageError) as e:
        report_error(e)
        return
    clear_caches()
    st.rerun()


def main():
    db_path = str(config.db_path)
    users = load_users(db_path)
    user = render_user_picker(users)

    st.title("Team")
    if not require_admin(user):
        return

    currency = get_storage(db_path).get_default_currency()

    with st.expander("➕ Add Team Member", expanded=False):
        render_add_user(currency)

    st.subheader("Members")
    for member in users.to_dict(orient="records"):
        with st.expander(f"{member['name']} · {role_badge(member['role'])}"):
            st.caption(
                f"@{member['username']} · {member.get('email') or 'no email'} · "
                f"cost {fmt_rate(member['base_cost_rate'], currency)} · "
                f"selling {fmt_rate(member['base_selling_rate'], currency)} · "
                f"joined {fmt_timestamp(member['created_at'], '%d %b %Y')}"
            )
            render_edit_user(member, user["id"])

    hours = hours_by_user(load_time_entries(db_path))
    if len(hours):
        st.plotly_chart(hours_by_user_bar(hours), use_container_width=True)


if __name__ == "__main__":
    main()
