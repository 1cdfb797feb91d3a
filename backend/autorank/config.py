"""
Configuration management for the AutoRank backend.
Uses pydantic-settings for environment variable handling.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # API Configuration
    api_title: str = "AutoRank API"
    api_version: str = "1.0.0"
    debug: bool = False

    # Data files (None = bundled files next to autorank/data)
    reference_data_path: str | None = None
    inventory_path: str | None = None

    # Ranking Configuration
    weights_version: str = "default-v1"
    currency_symbol: str = "€"
    default_result_limit: int = 50
    max_history: int = 10  # recent queries considered for history affinity

    # Query Parsing Configuration
    nl_min_signals: int = 2  # signals needed to call a query natural language
    nl_min_tokens: int = 4
    parse_cache_size: int = 256  # 0 disables the parse memo

    # Suggestion Configuration
    max_suggestions: int = 8


# Global settings instance
settings = Settings()
