"""Configuration using pydantic-settings."""
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Orchestrator settings file (timings, browser, suppliers)
    config_path: str = "config/settings.json"

    # Overrides browser.headless from the settings file when set
    headless: Optional[bool] = None

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
