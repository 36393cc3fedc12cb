"""
Application configuration management.
"""
import logging
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path("./data")


@dataclass
class AppConfig:
    """Application configuration with environment overrides."""

    # Paths
    data_dir: Path = field(default_factory=_default_data_dir)
    database_path: str = field(default_factory=lambda: os.getenv("DATABASE_PATH", ""))

    # Environment
    app_env: str = field(default_factory=lambda: os.getenv("APP_ENV", "dev"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Cache settings
    cache_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("CACHE_TTL_SECONDS", "60")))

    # Rates
    default_cost_rate: float = field(default_factory=lambda: float(os.getenv("DEFAULT_COST_RATE", "75")))
    default_selling_rate: float = field(default_factory=lambda: float(os.getenv("DEFAULT_SELLING_RATE", "125")))
    selling_rate_multiplier: float = field(default_factory=lambda: float(os.getenv("SELLING_RATE_MULTIPLIER", "1.5")))

    # Capacity
    monthly_hours_target: int = field(default_factory=lambda: int(os.getenv("MONTHLY_HOURS_TARGET", "160")))

    # Billing
    default_currency: str = field(default_factory=lambda: os.getenv("DEFAULT_CURRENCY", "USD"))

    # REST API
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "5000")))

    @property
    def db_path(self) -> Path:
        if self.database_path:
            return Path(self.database_path)
        return self.data_dir / "timetracker.db"

    @property
    def timer_state_dir(self) -> Path:
        return self.data_dir / "timers"

    @property
    def is_prod(self) -> bool:
        return self.app_env.lower() == "prod"


# Global config instance
config = AppConfig()


def configure_logging(level: Optional[str] = None):
    """Configure root logging from LOG_LEVEL."""
    logging.basicConfig(
        level=(level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Enumerations
USER_ROLES = ["admin", "regular"]
PROJECT_STATUSES = ["active", "completed", "paused"]
ENTRY_TYPES = ["manual", "timer"]

# Role labels used in team analytics
ROLE_LABELS = {
    "admin": "Project Manager",
    "regular": "Team Member",
}

# Setting keys
SETTING_DEFAULT_CURRENCY = "default_currency"

# Supported currencies: code -> (label, symbol)
CURRENCY_OPTIONS = {
    "USD": ("US Dollar ($)", "$"),
    "EUR": ("Euro (€)", "€"),
    "GBP": ("British Pound (£)", "£"),
    "CAD": ("Canadian Dollar (C$)", "C$"),
    "AUD": ("Australian Dollar (A$)", "A$"),
    "JPY": ("Japanese Yen (¥)", "¥"),
    "CHF": ("Swiss Franc (CHF)", "CHF "),
    "SEK": ("Swedish Krona (kr)", "kr "),
    "NOK": ("Norwegian Krone (kr)", "kr "),
    "DKK": ("Danish Krone (kr)", "kr "),
}

# Scope distribution buckets, matched in order against the scope name
SCOPE_CATEGORIES = [
    ("Development", ["Development"]),
    ("Design", ["Design"]),
    ("Testing", ["Testing", "QA"]),
]
SCOPE_CATEGORY_OTHER = "Other"

SCOPE_CATEGORY_COLORS = {
    "Development": "#2563eb",
    "Design": "#059669",
    "Testing": "#dc2626",
    "Other": "#7c2d12",
}

MONTH_LABELS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
