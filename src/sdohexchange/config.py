"""
SDOH Exchange Configuration Module

Centralized configuration management using Pydantic Settings.
Supports environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SDOH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True


class EhrSettings(BaseSettings):
    """EHR FHIR endpoint settings."""

    model_config = SettingsConfigDict(
        env_prefix="EHR_",
        env_file=".env",
        extra="ignore",
    )

    fhir_server_url: str = "http://localhost:8080/fhir"
    access_token: SecretStr | None = None
    timeout: int = 30

    @property
    def bearer_token(self) -> str | None:
        """Plain access token, if one is configured."""
        if self.access_token:
            return self.access_token.get_secret_value()
        return None


class Settings:
    """
    Aggregated settings container.

    Usage:
        from sdohexchange.config import get_settings
        settings = get_settings()
        print(settings.ehr.fhir_server_url)
    """

    def __init__(self):
        self.app = AppSettings()
        self.ehr = EhrSettings()

    @property
    def is_development(self) -> bool:
        return self.app.env == "development"

    @property
    def is_production(self) -> bool:
        return self.app.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The application settings
    """
    return Settings()
