"""
Report request and response models.
"""

from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field

from wastewatch.database.models.report import (
    Report,
    ReportCategory,
    ReportSeverity,
)
from wastewatch.models.base import APIBaseModel, UTCDatetime


class ImageRef(APIBaseModel):
    """Reference to a stored image."""

    url: str = Field(..., description="Public URL of the stored file")
    storage_id: str = Field(..., description="Stored file name, also the deletion key")


class GeoPoint(APIBaseModel):
    """GeoJSON point; coordinates are [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2)

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=[longitude, latitude])


class UserSummary(APIBaseModel):
    """Identity of a reporter or resolver."""

    id: UUID
    name: str
    email: str


class ReportCreate(APIBaseModel):
    """Validated fields of a new report."""

    model_config = {"str_strip_whitespace": True}

    title: str = Field(..., min_length=1, max_length=100, description="Short title")
    description: str = Field(..., min_length=1, max_length=1000, description="What was found")
    category: ReportCategory = Field(ReportCategory.OTHER, description="Kind of waste")
    severity: ReportSeverity = Field(ReportSeverity.MEDIUM, description="How bad it is")
    address: str = Field("", max_length=500, description="Human readable location label")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ReportResponse(APIBaseModel):
    """A report as returned by the API and the real-time channel."""

    id: UUID
    reporter_id: UUID
    reporter: Optional[UserSummary] = None
    title: str
    description: str
    images: List[ImageRef] = []
    location: GeoPoint
    address: str = ""
    category: str
    severity: str
    status: str
    resolved_at: Optional[UTCDatetime] = None
    resolved_by: Optional[UUID] = None
    resolver: Optional[UserSummary] = None
    resolution_notes: str = ""
    resolution_images: List[ImageRef] = []
    detection_results: List[Dict[str, Any]] = []
    detection_summary: Optional[Dict[str, Any]] = None
    created_at: UTCDatetime
    updated_at: UTCDatetime

    @classmethod
    def from_report(cls, report: Report) -> "ReportResponse":
        """Build the response from a report whose users are already loaded."""
        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            reporter=UserSummary.model_validate(report.reporter) if report.reporter else None,
            title=report.title,
            description=report.description,
            images=[ImageRef.model_validate(image) for image in report.images or []],
            location=GeoPoint(coordinates=report.coordinates),
            address=report.address or "",
            category=report.category,
            severity=report.severity,
            status=report.status,
            resolved_at=report.resolved_at,
            resolved_by=report.resolved_by_id,
            resolver=UserSummary.model_validate(report.resolver) if report.resolver else None,
            resolution_notes=report.resolution_notes or "",
            resolution_images=[
                ImageRef.model_validate(image) for image in report.resolution_images or []
            ],
            detection_results=list(report.detection_results or []),
            detection_summary=report.detection_summary,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )


def serialize_report(report: Report) -> Dict[str, Any]:
    """JSON-ready camelCase dict of a report."""
    return ReportResponse.from_report(report).model_dump(by_alias=True, mode="json")


class MapReportResponse(APIBaseModel):
    """Field-limited projection of a report for map rendering."""

    id: UUID
    title: str
    category: str
    status: str
    severity: str
    location: GeoPoint
    address: str = ""
    created_at: UTCDatetime

    @classmethod
    def from_row(cls, row) -> "MapReportResponse":
        return cls(
            id=row.id,
            title=row.title,
            category=row.category,
            status=row.status,
            severity=row.severity,
            location=GeoPoint.from_lat_lon(row.latitude, row.longitude),
            address=row.address or "",
            created_at=row.created_at,
        )


class DailyCount(APIBaseModel):
    date: str = Field(..., description="UTC calendar day, YYYY-MM-DD")
    count: int


class DashboardStats(APIBaseModel):
    """Aggregated report statistics for authorities."""

    total_reports: int
    status_stats: Dict[str, int]
    category_stats: Dict[str, int]
    severity_stats: Dict[str, int]
    resolution_rate: float = Field(..., description="Percent of reports resolved")
    avg_resolution_hours: float
    daily_trend: List[DailyCount]
    recent_reports: List[ReportResponse]


class ReportDetectionResults(APIBaseModel):
    """Stored detection annotations of a report."""

    images: List[ImageRef]
    detection_results: List[Dict[str, Any]]
    detection_summary: Optional[Dict[str, Any]] = None


class WasteTypeCount(APIBaseModel):
    name: str
    count: int


class DetectionStats(APIBaseModel):
    """Detection statistics across every analyzed report."""

    total_reports_analyzed: int
    total_detections: int
    avg_confidence: float
    waste_type_distribution: List[WasteTypeCount]
