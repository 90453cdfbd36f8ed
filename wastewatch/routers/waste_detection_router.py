"""
Waste detection router.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, UploadFile

from wastewatch.database.models.user import User
from wastewatch.middleware.auth import get_current_user, require_authority
from wastewatch.models.base import ApiResponse
from wastewatch.models.report_models import DetectionStats, ReportDetectionResults
from wastewatch.routers.dependencies import get_waste_detection_service
from wastewatch.services.image_storage import read_uploads
from wastewatch.services.waste_detection_service import WasteDetectionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/waste-detection", tags=["waste-detection"])


@router.post("/analyze", response_model=ApiResponse[Dict[str, Any]])
async def analyze_image(
    images: List[UploadFile] = File(default=[], description="Image to analyze"),
    current_user: User = Depends(get_current_user),
    service: WasteDetectionService = Depends(get_waste_detection_service),
) -> ApiResponse[Dict[str, Any]]:
    """Detect waste in one uploaded image and suggest a report category."""
    results = await service.analyze_image(await read_uploads(images))
    return ApiResponse[Dict[str, Any]](data=results)


@router.post("/report/{report_id}", response_model=ApiResponse[Dict[str, Any]])
async def analyze_report(
    report_id: str,
    current_user: User = Depends(require_authority),
    service: WasteDetectionService = Depends(get_waste_detection_service),
) -> ApiResponse[Dict[str, Any]]:
    """Run detection on every stored image of a report (authorities only)."""
    logger.info(f"Detection requested for report {report_id} by {current_user.email}")
    return ApiResponse[Dict[str, Any]](data=await service.analyze_report(report_id))


@router.get("/report/{report_id}", response_model=ApiResponse[ReportDetectionResults])
async def get_detection_results(
    report_id: str,
    current_user: User = Depends(get_current_user),
    service: WasteDetectionService = Depends(get_waste_detection_service),
) -> ApiResponse[ReportDetectionResults]:
    """Get the stored detection results of a report."""
    return ApiResponse[ReportDetectionResults](data=await service.get_report_detections(report_id))


@router.get("/stats", response_model=ApiResponse[DetectionStats])
async def get_detection_stats(
    current_user: User = Depends(require_authority),
    service: WasteDetectionService = Depends(get_waste_detection_service),
) -> ApiResponse[DetectionStats]:
    """Get detection statistics across all reports (authorities only)."""
    return ApiResponse[DetectionStats](data=await service.get_detection_stats())
