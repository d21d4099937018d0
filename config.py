import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        resync_minutes: int,
        dashboard_months: int,
        comparison_months: int,
        trend_window: int,
        seed_categories: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.resync_minutes = resync_minutes
        self.dashboard_months = dashboard_months
        self.comparison_months = comparison_months
        self.trend_window = trend_window
        self.seed_categories = seed_categories


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("EXPENSES_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "expenses.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("EXPENSES_TIMEZONE", "Europe/Berlin")
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    resync_minutes = int(os.getenv("EXPENSES_RESYNC_MINUTES", "60"))
    dashboard_months = int(os.getenv("EXPENSES_DASHBOARD_MONTHS", "6"))
    comparison_months = int(os.getenv("EXPENSES_COMPARISON_MONTHS", "12"))
    trend_window = int(os.getenv("EXPENSES_TREND_WINDOW", "5"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        resync_minutes=max(0, resync_minutes),
        dashboard_months=max(1, dashboard_months),
        comparison_months=max(1, comparison_months),
        trend_window=max(1, trend_window),
        seed_categories=_env_flag("EXPENSES_SEED_CATEGORIES", "1"),
    )
