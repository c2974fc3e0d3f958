import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def enabled(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").lower() == "true"


def env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        value = default
    return max(minimum, value)


def env_list(name: str) -> List[str]:
    raw = os.getenv(name, "") or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """
    Process configuration, read once from the environment (.env supported).
    """

    def __init__(self) -> None:
        self.EDUSAVE_VERSION = os.getenv("EDUSAVE_VERSION", "0.1.0")
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
        self.LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").upper()

        self.SUPABASE_URL = (os.getenv("SUPABASE_URL") or "").strip()
        self.SUPABASE_KEY = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY") or ""
        ).strip()

        self.CORS_MODE = (os.getenv("CORS_MODE", "off") or "off").lower()
        self.CORS_ALLOW_ORIGINS = env_list("CORS_ALLOW_ORIGINS")

        self.INTERNAL_TOKEN = os.getenv("INTERNAL_TOKEN", "") or ""

        self.APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Singapore")
        self.TOPUP_SCHEDULER_ENABLED = enabled("TOPUP_SCHEDULER_ENABLED")
        self.TOPUP_SCHEDULER_INTERVAL_SECONDS = env_int(
            "TOPUP_SCHEDULER_INTERVAL_SECONDS", 60, minimum=10
        )


settings = Settings()
