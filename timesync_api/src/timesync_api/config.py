# src/timesync_api/config.py

import logging
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Determine the base directory of this config file
CONFIG_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE_PATH = CONFIG_DIR / ".env"

# Explicitly load the .env file if it exists
if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=False)
    logger.info("TimeSyncAPI: Loaded .env file from: %s", ENV_FILE_PATH)
else:
    logger.debug(
        "TimeSyncAPI: .env file not found at %s. Relying on environment variables.",
        ENV_FILE_PATH,
    )


class Settings(BaseSettings):
    # === SendGrid (transactional email) ===
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""
    SENDGRID_FROM_NAME: str = "Grønbech Revision"
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"

    # === CVR company registry lookup ===
    CVR_API_URL: str = "https://cvrapi.dk/api"
    CVR_DEFAULT_COUNTRY: str = "dk"
    CVR_USER_AGENT: str = "TimeSync/1.0"

    HTTP_TIMEOUT_SECONDS: float = 10.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("SENDGRID_FROM_NAME", "CVR_DEFAULT_COUNTRY", mode="after")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()


try:
    settings = Settings()
    if not settings.SENDGRID_API_KEY:
        logger.warning("TimeSyncAPI: SENDGRID_API_KEY is not set. Email sending will fail.")
except Exception as e:
    logger.error("TimeSyncAPI: Error instantiating Settings: %s", e)
    raise
