"""
Dashboard aggregation service.

All figures are computed by the database on every call; nothing is cached.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

from wastewatch.database.models.report import (
    ReportCategory,
    ReportSeverity,
    ReportStatus,
)
from wastewatch.database.repositories.report import ReportRepository
from wastewatch.models.report_models import DailyCount, DashboardStats, ReportResponse

logger = logging.getLogger(__name__)

TREND_DAYS = 7
RECENT_REPORTS = 5
SECONDS_PER_HOUR = 3600


def zero_filled(counts: Dict[str, int], keys: Iterable[str]) -> Dict[str, int]:
    """Counts for every key, 0 for keys with no rows."""
    stats = {key: 0 for key in keys}
    for key, count in counts.items():
        stats[key] = count
    return stats


def calculate_resolution_rate(resolved: int, total: int) -> float:
    """Percentage of resolved reports, two decimals; 0 when there are none."""
    if total <= 0:
        return 0.0
    return round(resolved / total * 100, 2)


def seconds_to_hours(seconds: Optional[float]) -> float:
    if seconds is None:
        return 0.0
    return round(seconds / SECONDS_PER_HOUR, 2)


class DashboardService:
    def __init__(self, repository: ReportRepository):
        self.repository = repository

    async def get_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """
        Compute the dashboard statistics.

        Args:
            now: Reference time for the trailing trend window (defaults to now, UTC)
        """
        now = now or datetime.now(timezone.utc)

        breakdown = await self.repository.count_breakdown()
        status_counts = breakdown["status"]
        trend = await self.repository.daily_creation_trend(now - timedelta(days=TREND_DAYS))
        avg_seconds = await self.repository.average_resolution_seconds()
        recent = await self.repository.find_recent(RECENT_REPORTS)

        # Every report has a status, so the status breakdown sums to the total
        total = sum(status_counts.values())
        resolved = status_counts.get(ReportStatus.RESOLVED.value, 0)

        stats = DashboardStats(
            total_reports=total,
            status_stats=zero_filled(status_counts, (s.value for s in ReportStatus)),
            category_stats=zero_filled(breakdown["category"], (c.value for c in ReportCategory)),
            severity_stats=zero_filled(breakdown["severity"], (s.value for s in ReportSeverity)),
            resolution_rate=calculate_resolution_rate(resolved, total),
            avg_resolution_hours=seconds_to_hours(avg_seconds),
            daily_trend=[
                DailyCount(date=day.isoformat() if hasattr(day, "isoformat") else str(day), count=count)
                for day, count in trend
            ],
            recent_reports=[ReportResponse.from_report(report) for report in recent],
        )
        logger.debug(f"Dashboard stats computed: {total} report(s), {resolved} resolved")
        return stats
