"""
Session state management for Streamlit app.
"""
import streamlit as st
from typing import Optional, Dict, Any, List

from timetracker.config import config
from timetracker.tracking.timer import Timer


# =============================================================================
# DEFAULT VALUES
# =============================================================================

DEFAULTS = {
    # Acting user
    "current_user_id": None,

    # Analytics filters
    "analytics_search": "",
    "selected_projects": [],
    "selected_scopes": [],

    # Analytics overrides
    "sale_overrides": {},   # project_id -> sale amount
    "rate_overrides": {},   # project_id -> {user_id: cost rate}

    # Projects page
    "editing_project_id": None,
}


# =============================================================================
# STATE HELPERS
# =============================================================================

def init_state():
    """Initialize all session state keys with defaults."""
    for key, default in DEFAULTS.items():
        if key not in st.session_state:
            st.session_state[key] = default.copy() if isinstance(default, (dict, list)) else default


def get_state(key: str) -> Any:
    """Get state value with default fallback."""
    init_state()
    return st.session_state.get(key, DEFAULTS.get(key))


def set_state(key: str, value: Any):
    """Set state value."""
    st.session_state[key] = value


# =============================================================================
# CURRENT USER
# =============================================================================

def get_current_user_id() -> Optional[str]:
    return get_state("current_user_id")


def set_current_user_id(user_id: Optional[str]):
    set_state("current_user_id", user_id)


# =============================================================================
# TIMER
# =============================================================================

def get_timer(user_id: str) -> Timer:
    """
    Timer for the acting user.

    Reloaded from its state file on every rerun so a running or paused
    session survives page reloads.
    """
    return Timer.for_user(user_id, config.timer_state_dir)


# =============================================================================
# ANALYTICS FILTERS AND OVERRIDES
# =============================================================================

def get_analytics_filters() -> Dict[str, Any]:
    return {
        "search": get_state("analytics_search"),
        "project_ids": get_state("selected_projects"),
        "scope_names": get_state("selected_scopes"),
    }


def clear_analytics_filters():
    set_state("analytics_search", "")
    set_state("selected_projects", [])
    set_state("selected_scopes", [])


def get_sale_overrides() -> Dict[str, float]:
    return get_state("sale_overrides")


def set_sale_override(project_id: str, amount: Optional[float]):
    overrides = dict(get_sale_overrides())
    if amount is None or amount <= 0:
        overrides.pop(project_id, None)
    else:
        overrides[project_id] = float(amount)
    set_state("sale_overrides", overrides)


def get_rate_overrides() -> Dict[str, Dict[str, float]]:
    return get_state("rate_overrides")


def set_rate_override(project_id: str, user_id: str, rate: Optional[float]):
    overrides = {pid: dict(rates) for pid, rates in get_rate_overrides().items()}
    project_rates = overrides.setdefault(project_id, {})
    if rate is None:
        project_rates.pop(user_id, None)
    else:
        project_rates[user_id] = float(rate)
    set_state("rate_overrides", overrides)


def selected_names(options: List[str], selected: List[str]) -> List[str]:
    """Drop stale selections that are no longer valid options."""
    return [s for s in selected if s in options]
