"""
FastAPI dependencies that assemble the services for one request.

Process-wide collaborators (image storage, event broadcaster, detection
client) are created at startup and kept on the application state; the
database session is per request.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from wastewatch.database.connection import get_db
from wastewatch.database.repositories.report import ReportRepository
from wastewatch.services.dashboard_service import DashboardService
from wastewatch.services.event_broadcaster import EventBroadcaster
from wastewatch.services.image_storage import ImageStorage
from wastewatch.services.map_query_service import MapQueryService
from wastewatch.services.report_service import ReportService
from wastewatch.services.waste_detection_service import RoboflowClient, WasteDetectionService


def get_image_storage(request: Request) -> ImageStorage:
    return request.app.state.image_storage


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster


def get_roboflow_client(request: Request) -> RoboflowClient:
    return request.app.state.roboflow_client


def get_report_repository(db: AsyncSession = Depends(get_db)) -> ReportRepository:
    return ReportRepository(db)


def get_report_service(
    repository: ReportRepository = Depends(get_report_repository),
    storage: ImageStorage = Depends(get_image_storage),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> ReportService:
    return ReportService(repository, storage, broadcaster)


def get_map_service(
    repository: ReportRepository = Depends(get_report_repository),
) -> MapQueryService:
    return MapQueryService(repository)


def get_dashboard_service(
    repository: ReportRepository = Depends(get_report_repository),
) -> DashboardService:
    return DashboardService(repository)


def get_waste_detection_service(
    repository: ReportRepository = Depends(get_report_repository),
    storage: ImageStorage = Depends(get_image_storage),
    client: RoboflowClient = Depends(get_roboflow_client),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> WasteDetectionService:
    return WasteDetectionService(repository, storage, client, broadcaster)
