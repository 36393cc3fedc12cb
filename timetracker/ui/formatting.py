"""
Consistent number and display formatting.
"""
import pandas as pd
from typing import Union, Optional

from timetracker.config import CURRENCY_OPTIONS
from timetracker.tracking.timer import format_duration


# =============================================================================
# NUMBER FORMATTERS
# =============================================================================

def currency_symbol(currency: str = "USD") -> str:
    """Symbol for a currency code. Unknown codes are used as a prefix."""
    if currency in CURRENCY_OPTIONS:
        return CURRENCY_OPTIONS[currency][1]
    return f"{currency} "


def fmt_currency(value: Union[float, int, None], currency: str = "USD",
                 decimals: int = 2) -> str:
    """Format as currency: $1,234.56 or -€12.00"""
    if value is None or pd.isna(value):
        return "—"
    if currency == "JPY":
        decimals = 0
    symbol = currency_symbol(currency)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.{decimals}f}"


def fmt_hours(value: Union[float, int, None]) -> str:
    """Format hours: 1,234.5h"""
    if value is None or pd.isna(value):
        return "—"
    return f"{value:,.1f}h"


def fmt_rate(value: Union[float, int, None], currency: str = "USD") -> str:
    """Format hourly rate: $123/hr"""
    if value is None or pd.isna(value):
        return "—"
    return f"{fmt_currency(value, currency, decimals=0)}/hr"


def fmt_percent(value: Union[float, int, None], decimals: int = 1) -> str:
    """Format percentage: 12.3%"""
    if value is None or pd.isna(value):
        return "—"
    return f"{value:,.{decimals}f}%"


def fmt_count(value: Union[float, int, None]) -> str:
    """Format count: 1,234"""
    if value is None or pd.isna(value):
        return "—"
    return f"{int(value):,}"


def fmt_minutes(minutes: Union[float, int, None]) -> str:
    """Format a minute count: 2h 05m"""
    if minutes is None or pd.isna(minutes):
        return "—"
    hours, mins = divmod(int(minutes), 60)
    return f"{hours}h {mins:02d}m"


def fmt_duration(seconds: Union[float, int, None]) -> str:
    """Format a timer duration: 1h 2m 3s"""
    if seconds is None or pd.isna(seconds):
        return "—"
    return format_duration(seconds)


def fmt_timestamp(value: Optional[str], fmt: str = "%d %b %Y %H:%M") -> str:
    """Format an ISO timestamp string for tables."""
    if not value:
        return "—"
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(ts):
        return "—"
    return ts.strftime(fmt)


# =============================================================================
# DATAFRAME FORMATTERS
# =============================================================================

CURRENCY_COLUMNS = ["revenue", "cost", "profit", "sale_amount", "computed_revenue",
                    "estimated_revenue"]
HOURS_COLUMNS = ["hours", "total_hours"]
RATE_COLUMNS = ["rate", "cost_rate", "selling_rate", "base_cost_rate", "base_selling_rate"]
PERCENT_COLUMNS = ["margin_pct", "percent", "progress"]

COLUMN_LABELS = {
    "project_name": "Project",
    "scope_name": "Scope",
    "user_name": "User",
    "name": "Name",
    "role": "Role",
    "status": "Status",
    "hours": "Hours",
    "total_hours": "Hours",
    "rate": "Rate",
    "cost_rate": "Cost Rate",
    "selling_rate": "Selling Rate",
    "base_cost_rate": "Cost Rate",
    "base_selling_rate": "Selling Rate",
    "cost": "Cost",
    "revenue": "Revenue",
    "computed_revenue": "Computed Revenue",
    "sale_amount": "Sale Amount",
    "profit": "Profit",
    "margin_pct": "Margin %",
    "minutes": "Duration",
    "entry_type": "Type",
    "description": "Description",
    "created_at": "Logged",
}


def format_metric_df(df: pd.DataFrame, currency: str = "USD") -> pd.DataFrame:
    """
    Format a metrics dataframe for display.

    Applies appropriate formatting to known column types and renames
    columns to display labels.
    """
    df = df.copy()

    for col in df.columns:
        if col in CURRENCY_COLUMNS:
            df[col] = df[col].apply(lambda v: fmt_currency(v, currency))
        elif col in HOURS_COLUMNS:
            df[col] = df[col].apply(fmt_hours)
        elif col in RATE_COLUMNS:
            df[col] = df[col].apply(lambda v: fmt_rate(v, currency))
        elif col in PERCENT_COLUMNS:
            df[col] = df[col].apply(fmt_percent)
        elif col == "minutes":
            df[col] = df[col].apply(fmt_minutes)
        elif col == "created_at":
            df[col] = df[col].apply(fmt_timestamp)

    return df.rename(columns=COLUMN_LABELS)
