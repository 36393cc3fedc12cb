"""
Tests for display formatting.
"""
import numpy as np
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.ui.formatting import (
    currency_symbol,
    fmt_currency,
    fmt_hours,
    fmt_rate,
    fmt_percent,
    fmt_minutes,
    fmt_duration,
    fmt_timestamp,
    format_metric_df,
)


class TestCurrency:
    """Tests for currency formatting."""

    def test_symbols(self):
        assert currency_symbol("USD") == "$"
        assert currency_symbol("EUR") == "€"
        assert currency_symbol("XYZ") == "XYZ "

    def test_fmt_currency(self):
        assert fmt_currency(1234.5) == "$1,234.50"
        assert fmt_currency(-12, "GBP") == "-£12.00"

    def test_yen_has_no_decimals(self):
        assert fmt_currency(1500.4, "JPY") == "¥1,500"

    def test_missing(self):
        assert fmt_currency(None) == "—"
        assert fmt_currency(np.nan) == "—"

    def test_rate(self):
        assert fmt_rate(75) == "$75/hr"


class TestDurations:
    """Tests for hours and duration formatting."""

    def test_hours(self):
        assert fmt_hours(1.5) == "1.5h"
        assert fmt_hours(1234) == "1,234.0h"

    def test_minutes(self):
        assert fmt_minutes(125) == "2h 05m"
        assert fmt_minutes(45) == "0h 45m"

    def test_duration(self):
        assert fmt_duration(3723) == "1h 2m 3s"

    def test_percent(self):
        assert fmt_percent(45.678) == "45.7%"

    def test_timestamp(self):
        assert fmt_timestamp("2024-09-24T13:05:00+00:00") == "24 Sep 2024 13:05"
        assert fmt_timestamp(None) == "—"
        assert fmt_timestamp("not a date") == "—"


class TestFormatMetricDf:
    """Tests for dataframe display formatting."""

    def test_formats_and_renames(self):
        df = pd.DataFrame({
            "project_name": ["Alpha"],
            "total_hours": [2.5],
            "revenue": [263.0],
            "margin_pct": [43.0],
            "minutes": [150],
        })
        result = format_metric_df(df, "EUR")
        assert list(result.columns) == ["Project", "Hours", "Revenue", "Margin %", "Duration"]
        assert result.iloc[0].tolist() == ["Alpha", "2.5h", "€263.00", "43.0%", "2h 30m"]
