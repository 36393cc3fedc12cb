"""
Data loading utilities with Streamlit caching.

Every write made from the UI must call clear_caches() so the next rerun
sees it.
"""
import pandas as pd
import streamlit as st
from typing import Optional, Dict

from timetracker.config import config
from timetracker.data.frames import (
    to_frame, members_frame, entries_frame,
    USER_COLUMNS, PROJECT_COLUMNS, SCOPE_COLUMNS, TEMPLATE_COLUMNS,
)
from timetracker.data.storage import Storage


@st.cache_resource
def get_storage(db_path: Optional[str] = None) -> Storage:
    """Shared Storage instance for the Streamlit process."""
    return Storage(db_path or str(config.db_path))


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_users(db_path: str) -> pd.DataFrame:
    return to_frame(get_storage(db_path).get_users(), USER_COLUMNS)


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_projects(db_path: str) -> pd.DataFrame:
    return to_frame(get_storage(db_path).get_projects(), PROJECT_COLUMNS)


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_scopes(db_path: str) -> pd.DataFrame:
    return to_frame(get_storage(db_path).get_all_project_scopes(), SCOPE_COLUMNS)


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_scope_templates(db_path: str) -> pd.DataFrame:
    return to_frame(get_storage(db_path).get_scope_templates(), TEMPLATE_COLUMNS)


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_members(db_path: str) -> pd.DataFrame:
    return members_frame(get_storage(db_path).get_project_members())


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_time_entries(db_path: str, user_id: Optional[str] = None) -> pd.DataFrame:
    """Time entries with project, scope and user names, newest first."""
    return entries_frame(get_storage(db_path).get_time_entries(user_id=user_id))


def load_all(db_path: str) -> Dict[str, pd.DataFrame]:
    """All tables needed by the analytics and dashboard views."""
    return {
        "users": load_users(db_path),
        "projects": load_projects(db_path),
        "scopes": load_scopes(db_path),
        "members": load_members(db_path),
        "entries": load_time_entries(db_path),
    }


def clear_caches():
    """Drop cached frames after a write."""
    st.cache_data.clear()
