"""
Centralized configuration management for flashdeck.
"""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".flashdeck" / "flashdeck.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.

    Every field can be overridden with a FLASHDECK_-prefixed variable,
    e.g. FLASHDECK_DB_PATH or FLASHDECK_USE_SRS=false.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Core Paths ---
    db_path: Path = get_default_db_path()

    # Directory holding one YAML file per deck category.
    decks_dir: Path = Path("./decks")

    # --- Study Behaviour ---
    # When False, ratings only record difficulty and never touch the schedule.
    use_srs: bool = True

    # --- Logging ---
    log_level: str = "WARNING"


def get_settings() -> Settings:
    """Build a Settings instance from the current environment."""
    return Settings()
