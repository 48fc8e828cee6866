import os
from decimal import Decimal

from dotenv import load_dotenv
from pydantic import BaseModel

# Загрузка переменных из .env
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./bunkhouse.db"

    # Identity (tokens are issued by the auth provider, we only verify them)
    secret_key: str = "change-me"
    access_token_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Scheduler settings
    enable_scheduler: bool = True
    window_open_check_interval_minutes: int = 1
    weekly_schedule_day: str = "sun"
    weekly_schedule_hour: int = 0

    # Stays / guest fees
    default_guest_nightly_rate: Decimal = Decimal("50")

    # History
    history_default_limit: int = 20

    # Rate limiting settings
    rate_limit_enabled: bool = True  # Killswitch for quick disable
    rate_limit_claims: str = "20/minute"

    # Logging settings
    log_format: str = "console"  # Options: "console", "json"
    log_slow_request_threshold_ms: int = 500  # Log timing only if duration > threshold


settings = Settings(
    database_url=os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./bunkhouse.db"),
    secret_key=os.environ.get("SECRET_KEY", "change-me"),
    access_token_algorithm=os.environ.get("ACCESS_TOKEN_ALGORITHM", "HS256"),
    access_token_expire_minutes=int(
        os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))
    ),
    enable_scheduler=_env_bool("ENABLE_SCHEDULER", "true"),
    window_open_check_interval_minutes=int(
        os.environ.get("WINDOW_OPEN_CHECK_INTERVAL_MINUTES", "1")
    ),
    weekly_schedule_day=os.environ.get("WEEKLY_SCHEDULE_DAY", "sun"),
    weekly_schedule_hour=int(os.environ.get("WEEKLY_SCHEDULE_HOUR", "0")),
    default_guest_nightly_rate=Decimal(
        os.environ.get("DEFAULT_GUEST_NIGHTLY_RATE", "50")
    ),
    history_default_limit=int(os.environ.get("HISTORY_DEFAULT_LIMIT", "20")),
    rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
    rate_limit_claims=os.environ.get("RATE_LIMIT_CLAIMS", "20/minute"),
    log_format=os.environ.get("LOG_FORMAT", "console"),
    log_slow_request_threshold_ms=int(
        os.environ.get("LOG_SLOW_REQUEST_THRESHOLD_MS", "500")
    ),
)
