from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError

ENV_PATH = Path(__file__).resolve().parents[1] / ".env.local"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    # Airtable settings (validated per request, not at startup)
    AIRTABLE_ACCESS_TOKEN: Optional[str] = None
    AIRTABLE_BASE_ID: Optional[str] = None
    AIRTABLE_TABLE_NAME: Optional[str] = None
    AIRTABLE_EVENTS_TABLE: str = "Funnel Events"
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_TIMEOUT: float = 30.0

    # Dashboard settings
    REFRESH_INTERVAL_SECONDS: float = 30.0
    ONBOARDED_GOAL: int = 100
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def missing_airtable_settings(self) -> List[str]:
        required = {
            "AIRTABLE_ACCESS_TOKEN": self.AIRTABLE_ACCESS_TOKEN,
            "AIRTABLE_BASE_ID": self.AIRTABLE_BASE_ID,
            "AIRTABLE_TABLE_NAME": self.AIRTABLE_TABLE_NAME,
        }
        return [name for name, value in required.items() if not (value or "").strip()]

    def require_airtable(self) -> None:
        """Raise ConfigurationError naming every missing Airtable variable."""
        missing = self.missing_airtable_settings()
        if missing:
            raise ConfigurationError(f"Missing Airtable configuration: {', '.join(missing)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or get_settings().LOG_LEVEL or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
