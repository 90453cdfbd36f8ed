"""
Reports router: the report lifecycle endpoints.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from wastewatch.database.models.user import User
from wastewatch.middleware.auth import get_current_user, require_authority
from wastewatch.models.base import ApiResponse, MessageResponse, PaginatedResponse
from wastewatch.models.report_models import ReportResponse
from wastewatch.routers.dependencies import get_report_service
from wastewatch.services.image_storage import read_uploads
from wastewatch.services.report_service import Page, ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


class DeleteReportResponse(MessageResponse):
    data: dict = {}


def _page_response(page: Page) -> PaginatedResponse[ReportResponse]:
    return PaginatedResponse[ReportResponse](
        count=len(page.items),
        total=page.total,
        total_pages=page.total_pages,
        current_page=page.page,
        data=[ReportResponse.from_report(report) for report in page.items],
    )


# Static paths must be declared before /{report_id}


@router.get("/user/my-reports", response_model=PaginatedResponse[ReportResponse])
async def get_my_reports(
    page: int = 1,
    limit: int = 10,
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
) -> PaginatedResponse[ReportResponse]:
    """Get the caller's own reports, newest first."""
    return _page_response(await service.list_mine(current_user, page=page, limit=limit))


@router.post(
    "",
    response_model=ApiResponse[ReportResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_report(
    title: Optional[str] = Form(None, description="Short title (max 100 characters)"),
    description: Optional[str] = Form(None, description="Details (max 1000 characters)"),
    latitude: Optional[str] = Form(None, description="Latitude of the waste"),
    longitude: Optional[str] = Form(None, description="Longitude of the waste"),
    address: Optional[str] = Form(None, description="Human readable location"),
    category: Optional[str] = Form(None, description="Waste category"),
    severity: Optional[str] = Form(None, description="low, medium or high"),
    images: List[UploadFile] = File(default=[], description="Photos (max 5)"),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
) -> ApiResponse[ReportResponse]:
    """
    Submit a new waste report.

    Accepts multipart form data with up to 5 photos. Photos are normalized
    to JPEG before they are stored.
    """
    fields = {
        "title": title,
        "description": description,
        "latitude": latitude,
        "longitude": longitude,
        "address": address,
        "category": category or None,
        "severity": severity or None,
    }
    report = await service.create(current_user, fields, await read_uploads(images))
    return ApiResponse[ReportResponse](data=ReportResponse.from_report(report))


@router.get("", response_model=PaginatedResponse[ReportResponse])
async def list_reports(
    status: Optional[str] = None,
    category: Optional[str] = None,
    severity: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius: Optional[float] = None,
    page: int = 1,
    limit: int = 10,
    service: ReportService = Depends(get_report_service),
) -> PaginatedResponse[ReportResponse]:
    """
    List reports (public).

    Filters combine with AND. With latitude, longitude and radius (meters)
    only reports inside the circle are returned, nearest first; otherwise
    newest first.
    """
    page_result = await service.list(
        status=status,
        category=category,
        severity=severity,
        latitude=latitude,
        longitude=longitude,
        radius=radius,
        page=page,
        limit=limit,
    )
    return _page_response(page_result)


@router.get("/{report_id}", response_model=ApiResponse[ReportResponse])
async def get_report(
    report_id: str,
    service: ReportService = Depends(get_report_service),
) -> ApiResponse[ReportResponse]:
    """Get a single report (public)."""
    report = await service.get(report_id)
    return ApiResponse[ReportResponse](data=ReportResponse.from_report(report))


@router.put("/{report_id}", response_model=ApiResponse[ReportResponse])
async def update_report(
    report_id: str,
    status: Optional[str] = Form(None, description="open, in-progress or resolved"),
    resolution_notes: Optional[str] = Form(None, alias="resolutionNotes"),
    resolution_images: List[UploadFile] = File(default=[], alias="resolutionImages"),
    current_user: User = Depends(require_authority),
    service: ReportService = Depends(get_report_service),
) -> ApiResponse[ReportResponse]:
    """
    Update the status of a report (authorities only).

    Resolving a report records who resolved it and when, the notes, and any
    uploaded resolution photos.
    """
    report = await service.update_status(
        current_user,
        report_id,
        status,
        resolution_notes=resolution_notes,
        resolution_images=await read_uploads(resolution_images),
    )
    return ApiResponse[ReportResponse](data=ReportResponse.from_report(report))


@router.delete("/{report_id}", response_model=DeleteReportResponse)
async def delete_report(
    report_id: str,
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
) -> DeleteReportResponse:
    """Delete a report (its reporter or any authority)."""
    await service.delete(current_user, report_id)
    return DeleteReportResponse(message="Report deleted successfully")
