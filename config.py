"""
Configuration management for the position ledger.
Uses pydantic-settings for type-safe, centralized configuration.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type safety.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Database
    database_url: str = "sqlite:///position_ledger.db"
    db_echo: bool = False

    # Ledger write policy
    allow_short_positions: bool = False  # False: a SELL beyond open lots is rejected
    recompute_max_attempts: int = 3

    # Valuation
    base_currency: str = "BRL"
    default_usd_brl_rate: float = 5.0

    # Logging
    log_level: str = "INFO"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(**overrides) -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings(**overrides)
    return _settings
