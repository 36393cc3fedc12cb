"""
Standard chart wrappers using Plotly.
"""
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd
from typing import Optional


# =============================================================================
# CHART THEME
# =============================================================================

CHART_COLORS = {
    "primary": "#2563eb",
    "secondary": "#059669",
    "success": "#28a745",
    "warning": "#ffc107",
    "danger": "#dc3545",
    "neutral": "#6c757d",
    "light": "#f8f9fa",
}

CHART_TEMPLATE = "plotly_white"

DEFAULT_LAYOUT = {
    "template": CHART_TEMPLATE,
    "font": {"family": "Arial, sans-serif", "size": 12},
    "margin": {"l": 50, "r": 30, "t": 40, "b": 50},
    "hoverlabel": {"bgcolor": "white"},
}


def apply_layout(fig: go.Figure, **kwargs) -> go.Figure:
    """Apply standard layout to figure."""
    layout = {**DEFAULT_LAYOUT, **kwargs}
    fig.update_layout(**layout)
    return fig


# =============================================================================
# ANALYTICS CHARTS
# =============================================================================

def time_by_project_bar(df: pd.DataFrame, title: str = "Time by Project") -> go.Figure:
    """Hours per project as bars."""
    fig = px.bar(
        df, x="project_name", y="hours",
        title=title,
        text="hours",
        color_discrete_sequence=[CHART_COLORS["primary"]],
    )
    fig.update_traces(texttemplate="%{text:.1f}h", textposition="outside")
    fig.update_layout(xaxis_title="", yaxis_title="Hours")
    return apply_layout(fig)


def scope_distribution_pie(df: pd.DataFrame, title: str = "Scope Distribution") -> go.Figure:
    """Share of hours per scope category."""
    fig = go.Figure(go.Pie(
        labels=df["category"],
        values=df["percent"],
        marker={"colors": list(df["color"])},
        hole=0.4,
        texttemplate="%{label}: %{value}%",
        sort=False,
    ))
    fig.update_layout(title=title)
    return apply_layout(fig)


def monthly_hours_chart(df: pd.DataFrame, year: int,
                        title: Optional[str] = None) -> go.Figure:
    """Monthly hours as bars with the target as a line."""
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Hours",
        x=df["month"],
        y=df["hours"],
        marker_color=CHART_COLORS["primary"],
    ))
    fig.add_trace(go.Scatter(
        name="Target",
        x=df["month"],
        y=df["target"],
        mode="lines",
        line={"color": CHART_COLORS["danger"], "dash": "dash"},
    ))
    fig.update_layout(title=title or f"Monthly Hours {year}", yaxis_title="Hours")
    return apply_layout(fig)


def revenue_cost_bar(df: pd.DataFrame, title: str = "Revenue vs Cost") -> go.Figure:
    """Grouped revenue / cost / profit per project."""
    fig = go.Figure()
    series = [
        ("Revenue", "revenue", CHART_COLORS["primary"]),
        ("Cost", "cost", CHART_COLORS["danger"]),
        ("Profit", "profit", CHART_COLORS["secondary"]),
    ]
    for name, col, color in series:
        fig.add_trace(go.Bar(name=name, x=df["project_name"], y=df[col], marker_color=color))
    fig.update_layout(barmode="group", title=title)
    return apply_layout(fig)


def hours_by_user_bar(df: pd.DataFrame, title: str = "Hours by Team Member") -> go.Figure:
    """Horizontal bars of hours per user."""
    fig = px.bar(
        df, x="hours", y="user_name", orientation="h",
        title=title,
        color_discrete_sequence=[CHART_COLORS["secondary"]],
    )
    fig.update_layout(yaxis={"categoryorder": "total ascending"}, xaxis_title="Hours", yaxis_title="")
    return apply_layout(fig)
