"""
Runtime settings, read from AUTO_TAX_* environment variables or a .env file.

``default_registry`` merges ``rules_file`` into the catalog. The CLI reads
the log level, report directory and default jurisdiction.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AUTO_TAX_", env_file=".env", extra="ignore")

    log_level: str = "WARNING"
    rules_file: Optional[str] = None  # extra JSON rule records merged into the catalog
    report_dir: str = "reports"
    default_jurisdiction: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
