"""
Map query service: a capped, field-limited view of reports for map widgets.
"""

import logging
from typing import List, Optional

from wastewatch.database.models.report import ReportStatus
from wastewatch.database.repositories.report import ReportRepository
from wastewatch.models.report_models import MapReportResponse
from wastewatch.services.errors import InvalidInputError

logger = logging.getLogger(__name__)

MAP_REPORT_LIMIT = 500


class MapQueryService:
    def __init__(self, repository: ReportRepository, limit: int = MAP_REPORT_LIMIT):
        self.repository = repository
        self.limit = limit

    async def get_map_reports(self, status: Optional[str] = None) -> List[MapReportResponse]:
        """Up to ``limit`` newest reports, optionally with one status."""
        if status and status not in {s.value for s in ReportStatus}:
            raise InvalidInputError(f"Invalid status '{status}'")

        rows = await self.repository.find_for_map(status or None, limit=self.limit)
        logger.debug(f"Map query (status={status}) returned {len(rows)} report(s)")
        return [MapReportResponse.from_row(row) for row in rows]
