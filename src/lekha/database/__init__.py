"""Database layer for lekha application."""

from lekha.database.base import Database
from lekha.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
