"""
SQLAlchemy models for WasteWatch.
"""
from wastewatch.database.models.report import (
    Report,
    ReportCategory,
    ReportSeverity,
    ReportStatus,
)
from wastewatch.database.models.user import User, UserRole

__all__ = [
    "Report",
    "ReportCategory",
    "ReportSeverity",
    "ReportStatus",
    "User",
    "UserRole",
]
