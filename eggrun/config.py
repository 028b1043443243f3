"""
Centralised config for the entire application.

This module consolidates all configuration settings, loading values from
environment variables and providing typed, validated access to them through
a singleton `settings` object.
"""

import os
from urllib.parse import quote_plus
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings.

    Pydantic's BaseSettings will automatically load values from a `.env` file
    or from system environment variables. Every field has a default so the
    package can be imported (and tested) without any environment at all.
    """
    # Model config: Load from a .env file, and treat env vars as case-insensitive
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False)

    # --- CORE SETTINGS ---
    # The root directory of the project.
    # We determine this by finding the parent directory of this config file.
    PROJECT_ROOT: Path = Path(__file__).parent.parent.resolve()
    ENVIRONMENT: str = "development"

    # --- DATABASE (from environment) ---
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: Optional[int] = 5432
    POSTGRES_DB: Optional[str] = None
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 4

    # --- WORKOUT & REWARD RULES ---
    METERS_PER_STEP: float = 0.7  # fixed stride, no calibration
    REWARD_DISTANCE_KM: float = 5.0  # one egg per workout past this, one candy per multiple

    # --- COSTS ---
    EGG_HATCH_EGGS: int = 1
    EGG_HATCH_CANDIES: int = 1
    EVOLVE_CANDIES: int = 1

    # --- SESSION & DISPATCH ---
    # What start_workout does while a session is already running.
    WORKOUT_RESTART_POLICY: Literal["reject", "replace"] = "reject"
    WORKER_POOL_SIZE: int = 4

    # --- FIRST-RUN USER SETTINGS ---
    DEFAULT_LANGUAGE: Literal["es", "en"] = "es"
    DEFAULT_DISTANCE_UNIT: Literal["km", "mi"] = "km"

    # --- CATALOG ---
    # Bundled with the package, so it does not follow PROJECT_ROOT.
    CATALOG_PATH: Path = Path(__file__).parent.resolve() / "data" / "catalog.json"

    def __init__(self, **values):
        super().__init__(**values)
        # Check for an explicit override for the host from the environment
        db_host = os.getenv("DB_HOST_OVERRIDE", self.POSTGRES_HOST)
        if self.POSTGRES_USER and self.POSTGRES_PASSWORD and db_host and self.POSTGRES_DB:
            # URL-encode user/pass to support special characters like @ and #
            user_enc = quote_plus(self.POSTGRES_USER)
            pass_enc = quote_plus(self.POSTGRES_PASSWORD)
            self.DATABASE_URL = (
                f"postgresql://{user_enc}:{pass_enc}@{db_host}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

    # --- FILE PATHS (derived from PROJECT_ROOT) ---
    @property
    def log_path(self) -> Path:
        return self.PROJECT_ROOT / "logs/eggrun.log"

    @property
    def state_dir(self) -> Path:
        return self.PROJECT_ROOT / "knowledge/state"

    @property
    def species_path(self) -> Path:
        return self.state_dir / "species.json"

    @property
    def inventory_path(self) -> Path:
        return self.state_dir / "inventory.json"

    @property
    def owned_creatures_path(self) -> Path:
        return self.state_dir / "owned_creatures.json"

    @property
    def collection_path(self) -> Path:
        return self.state_dir / "collection_entries.json"

    @property
    def workouts_path(self) -> Path:
        return self.state_dir / "workouts.json"

    @property
    def user_settings_path(self) -> Path:
        return self.state_dir / "user_settings.json"


# Create a single, importable instance of the settings
settings = Settings()
