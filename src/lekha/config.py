"""
Application configuration.

All configuration is loaded from environment variables, optionally seeded
from a .env file in the working directory.
"""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()

APP_NAME = "lekha"
DATA_DIR = Path.home() / ".lekha"


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.db_path = Path(os.getenv("LEKHA_DB_PATH", str(DATA_DIR / "lekha.db")))
        self.sync_dir = Path(os.getenv("LEKHA_SYNC_DIR", str(DATA_DIR / "cloud")))
        self.state_path = Path(os.getenv("LEKHA_STATE_PATH", str(DATA_DIR / "state.json")))
        self.log_level = os.getenv("LEKHA_LOG_LEVEL", "WARNING").upper()
        self.user = os.getenv("LEKHA_USER", "system")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
