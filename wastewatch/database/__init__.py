"""
Database module for WasteWatch.

Provides the SQLAlchemy async connection handle, models, and repositories.
"""
from wastewatch.database.connection import (
    Base,
    Database,
    get_database_url,
    get_db,
)

__all__ = [
    "Base",
    "Database",
    "get_database_url",
    "get_db",
]
