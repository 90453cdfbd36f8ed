"""
Database repositories for WasteWatch.
"""
from wastewatch.database.repositories.base import BaseRepository
from wastewatch.database.repositories.report import ReportFilters, ReportRepository
from wastewatch.database.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "ReportFilters",
    "ReportRepository",
    "UserRepository",
]
