"""Services module."""
from wastewatch.services.dashboard_service import DashboardService
from wastewatch.services.event_broadcaster import EventBroadcaster, EventPublisher, ReportEvent
from wastewatch.services.image_storage import ImageStorage
from wastewatch.services.map_query_service import MapQueryService
from wastewatch.services.report_service import ReportService
from wastewatch.services.waste_detection_service import RoboflowClient, WasteDetectionService

__all__ = [
    "DashboardService",
    "EventBroadcaster",
    "EventPublisher",
    "ImageStorage",
    "MapQueryService",
    "ReportEvent",
    "ReportService",
    "RoboflowClient",
    "WasteDetectionService",
]
