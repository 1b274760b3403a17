import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        max_upload_bytes: int,
        fiscal_month_start_day: int,
        seed_rules: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.max_upload_bytes = max_upload_bytes
        self.fiscal_month_start_day = fiscal_month_start_day
        self.seed_rules = seed_rules


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINTRACK_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "fintrack.db"
    database_url = os.getenv("FINTRACK_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINTRACK_TIMEZONE", "UTC")
    max_upload_mb = float(os.getenv("FINTRACK_MAX_UPLOAD_MB", "5"))
    fiscal_month_start_day = int(os.getenv("FINTRACK_FISCAL_MONTH_START_DAY", "1"))
    seed_rules = _env_flag("FINTRACK_SEED_RULES", "1")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        max_upload_bytes=int(max_upload_mb * 1024 * 1024),
        fiscal_month_start_day=fiscal_month_start_day,
        seed_rules=seed_rules,
    )
