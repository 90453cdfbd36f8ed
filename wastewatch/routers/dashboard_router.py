"""
Dashboard router: public map data and authority statistics.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from wastewatch.database.models.user import User
from wastewatch.middleware.auth import require_authority
from wastewatch.models.base import ApiResponse, ListResponse
from wastewatch.models.report_models import DashboardStats, MapReportResponse
from wastewatch.routers.dependencies import get_dashboard_service, get_map_service
from wastewatch.services.dashboard_service import DashboardService
from wastewatch.services.map_query_service import MapQueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/map", response_model=ListResponse[MapReportResponse])
async def get_map_data(
    status: Optional[str] = None,
    service: MapQueryService = Depends(get_map_service),
) -> ListResponse[MapReportResponse]:
    """Get up to 500 reports for map rendering (public, not paginated)."""
    reports = await service.get_map_reports(status)
    return ListResponse[MapReportResponse](count=len(reports), data=reports)


@router.get("/stats", response_model=ApiResponse[DashboardStats])
async def get_stats(
    current_user: User = Depends(require_authority),
    service: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse[DashboardStats]:
    """Get aggregated report statistics (authorities only)."""
    return ApiResponse[DashboardStats](data=await service.get_stats())
