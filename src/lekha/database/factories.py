"""Database factory functions for creating database instances."""

from pathlib import Path
from typing import Optional

from lekha.config import get_settings
from lekha.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, uses the
            configured LEKHA_DB_PATH, which defaults to ~/.lekha/lekha.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = str(get_settings().db_path)

    Path(database_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    database_url = f"sqlite:///{Path(database_path).expanduser()}"
    return SQLAlchemyDatabase(database_url)
