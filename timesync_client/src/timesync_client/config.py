# src/timesync_client/config.py

import logging
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Determine the base directory of this config file
# .env is at the service root, two levels up from src/timesync_client/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"

if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=False)
    logger.info("TimeSyncClient: Loaded .env file from: %s", ENV_FILE_PATH)
else:
    logger.debug(
        "TimeSyncClient: .env file not found at %s. Relying on environment variables.",
        ENV_FILE_PATH,
    )


class Settings(BaseSettings):
    # === PocketBase backend ===
    POCKETBASE_URL: str = "https://timesync.pockethost.io/"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    PAGE_SIZE: int = 500

    # === Session persistence ===
    # No file means the token only lives for the lifetime of the process.
    TOKEN_FILE: Optional[Path] = None
    AUTH_REFRESH_INTERVAL_SECONDS: float = 24 * 60 * 60

    # === Per-view cache lifetimes ===
    TTL_CUSTOMERS_SECONDS: float = 5 * 60
    TTL_MESSAGES_SECONDS: float = 30
    TTL_READ_MESSAGES_SECONDS: float = 2 * 60
    TTL_ARCHIVED_MESSAGES_SECONDS: float = 5 * 60
    TTL_USERS_SECONDS: float = 10 * 60
    TTL_HOUR_LOGS_SECONDS: float = 60

    LOG_LEVEL: str = "INFO"

    @property
    def view_ttls(self) -> Dict[str, float]:
        return {
            "customers": self.TTL_CUSTOMERS_SECONDS,
            "messages": self.TTL_MESSAGES_SECONDS,
            "read_messages": self.TTL_READ_MESSAGES_SECONDS,
            "archived_messages": self.TTL_ARCHIVED_MESSAGES_SECONDS,
            "users": self.TTL_USERS_SECONDS,
            "hour_logs": self.TTL_HOUR_LOGS_SECONDS,
        }

    model_config = SettingsConfigDict(
        env_prefix="TIMESYNC_",
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("POCKETBASE_URL", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("POCKETBASE_URL must not be empty.")
        return v.strip().rstrip("/")

    @field_validator(
        "TTL_CUSTOMERS_SECONDS",
        "TTL_MESSAGES_SECONDS",
        "TTL_READ_MESSAGES_SECONDS",
        "TTL_ARCHIVED_MESSAGES_SECONDS",
        "TTL_USERS_SECONDS",
        "TTL_HOUR_LOGS_SECONDS",
        mode="after",
    )
    @classmethod
    def check_positive_ttl(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Cache TTLs must be positive.")
        return v


try:
    settings = Settings()
    logger.debug("TimeSyncClient: PocketBase URL: %s", settings.POCKETBASE_URL)
except Exception as e:
    logger.error("TimeSyncClient: Error instantiating Settings: %s", e)
    raise
