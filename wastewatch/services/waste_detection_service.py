"""
Waste detection through the Roboflow hosted inference API.

The client sends one base64-encoded image per request and reshapes the
predictions into detection annotations. Multi-image analysis runs strictly
one image at a time; a failing image is recorded and the rest still run.
Detection results are stored on reports as annotations only: they never
change a report's status or category.
"""

import asyncio
import base64
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from wastewatch.config.settings import Settings, get_settings
from wastewatch.database.models.report import ReportCategory
from wastewatch.database.repositories.report import ReportRepository
from wastewatch.models.report_models import (
    DetectionStats,
    ImageRef,
    ReportDetectionResults,
    WasteTypeCount,
    serialize_report,
)
from wastewatch.services.errors import InvalidInputError, NotFoundError, UpstreamError
from wastewatch.services.event_broadcaster import EventPublisher, ReportEvent
from wastewatch.services.image_storage import ImageStorage, UploadedImage
from wastewatch.services.report_service import parse_report_id

logger = logging.getLogger(__name__)

# Ordered (keyword, category) pairs; the first keyword contained in the
# class name wins
CATEGORY_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    # Plastic items
    ("plastic", ReportCategory.PLASTIC.value),
    ("plastic_bottle", ReportCategory.PLASTIC.value),
    ("bottle", ReportCategory.PLASTIC.value),
    ("plastic_bag", ReportCategory.PLASTIC.value),
    ("container", ReportCategory.PLASTIC.value),
    # Organic items
    ("organic", ReportCategory.ORGANIC.value),
    ("food", ReportCategory.ORGANIC.value),
    ("food_waste", ReportCategory.ORGANIC.value),
    ("biodegradable", ReportCategory.ORGANIC.value),
    # Hazardous items
    ("hazardous", ReportCategory.HAZARDOUS.value),
    ("battery", ReportCategory.HAZARDOUS.value),
    ("chemical", ReportCategory.HAZARDOUS.value),
    ("medical", ReportCategory.HAZARDOUS.value),
    # Electronic items
    ("electronic", ReportCategory.ELECTRONIC.value),
    ("e-waste", ReportCategory.ELECTRONIC.value),
    ("electronics", ReportCategory.ELECTRONIC.value),
    # Construction items
    ("construction", ReportCategory.CONSTRUCTION.value),
    ("debris", ReportCategory.CONSTRUCTION.value),
    ("rubble", ReportCategory.CONSTRUCTION.value),
    # Metal and recyclables
    ("metal", ReportCategory.OTHER.value),
    ("can", ReportCategory.OTHER.value),
    ("glass", ReportCategory.OTHER.value),
    ("paper", ReportCategory.OTHER.value),
    ("cardboard", ReportCategory.OTHER.value),
)


def map_to_category(class_name: Optional[str]) -> str:
    """Report category for a detected class name (case-insensitive substring match)."""
    if not class_name:
        return ReportCategory.OTHER.value

    class_lower = class_name.lower()
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in class_lower:
            return category
    return ReportCategory.OTHER.value


def format_detection_results(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reshape a Roboflow response into detection results.

    Bounding boxes keep Roboflow's center coordinates (x, y) with width
    and height; confidences are rounded to two decimals.
    """
    detections = [
        {
            "class": pred.get("class"),
            "confidence": round(float(pred.get("confidence") or 0), 2),
            "bbox": {
                "x": pred.get("x"),
                "y": pred.get("y"),
                "width": pred.get("width"),
                "height": pred.get("height"),
            },
        }
        for pred in raw.get("predictions") or []
    ]

    class_counts: Dict[str, int] = {}
    for detection in detections:
        class_counts[detection["class"]] = class_counts.get(detection["class"], 0) + 1

    avg_confidence = (
        round(sum(d["confidence"] for d in detections) / len(detections), 2)
        if detections
        else 0
    )

    image = raw.get("image") or {}
    return {
        "success": True,
        "imageWidth": image.get("width"),
        "imageHeight": image.get("height"),
        "detectionCount": len(detections),
        "detections": detections,
        "summary": {
            "classCounts": class_counts,
            "avgConfidence": avg_confidence,
            # max() keeps the first class seen among equal counts
            "dominantClass": max(class_counts, key=class_counts.get) if class_counts else None,
        },
    }


def summarize_detection_stats(results: Sequence[Sequence[Dict[str, Any]]]) -> DetectionStats:
    """Aggregate the detection annotations of many reports."""
    class_counts: Dict[str, int] = {}
    total_detections = 0
    total_confidence = 0.0

    for detections in results:
        for detection in detections:
            name = detection.get("class")
            class_counts[name] = class_counts.get(name, 0) + 1
            total_detections += 1
            total_confidence += detection.get("confidence") or 0

    distribution = sorted(class_counts.items(), key=lambda item: item[1], reverse=True)
    return DetectionStats(
        total_reports_analyzed=len(results),
        total_detections=total_detections,
        avg_confidence=round(total_confidence / total_detections, 2) if total_detections else 0,
        waste_type_distribution=[
            WasteTypeCount(name=str(name), count=count) for name, count in distribution
        ],
    )


class RoboflowClient:
    """
    Client for the Roboflow hosted inference API.

    No retries; the timeout bounds the transport only.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_id: str = "waste-hsysm",
        version: str = "4",
        api_url: str = "https://serverless.roboflow.com",
        confidence: int = 25,
        overlap: int = 30,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Roboflow client.

        Args:
            api_key: Roboflow API key; detection fails without one
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.model_id = model_id
        self.version = version
        self.model_url = f"{api_url.rstrip('/')}/{model_id}/{version}"
        self.confidence = confidence
        self.overlap = overlap
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RoboflowClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.roboflow_api_key,
            model_id=settings.roboflow_model_id,
            version=settings.roboflow_version,
            api_url=settings.roboflow_api_url,
            confidence=settings.roboflow_confidence,
            overlap=settings.roboflow_overlap,
            timeout=settings.roboflow_timeout_seconds,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _error_for_status(self, response: httpx.Response) -> UpstreamError:
        status_code = response.status_code
        if status_code == 403:
            message = (
                "Roboflow API access denied. Please check:\n"
                "1. Your API key is correct\n"
                f"2. You have access to model: {self.model_id}\n"
                f"3. The model version {self.version} exists"
            )
        elif status_code == 404:
            message = (
                f"Model not found: {self.model_id}/{self.version}. "
                "Please verify your model ID and version number in Roboflow."
            )
        elif status_code == 405:
            message = (
                "Method not allowed. This usually means the endpoint URL is incorrect. "
                f"Current URL: {self.model_url}"
            )
        else:
            message = f"Roboflow API error: {status_code} - {response.text}"
        return UpstreamError(message)

    async def detect(self, image_data: bytes) -> Dict[str, Any]:
        """
        Detect waste in one image.

        Returns:
            Formatted detection results (see ``format_detection_results``)

        Raises:
            UpstreamError: Missing API key, transport failure, non-2xx or malformed response
        """
        if not self.api_key:
            raise UpstreamError("ROBOFLOW_API_KEY not configured. Please add it to your .env file.")

        body = base64.b64encode(image_data).decode("ascii")
        params = {
            "api_key": self.api_key,
            "confidence": self.confidence,
            "overlap": self.overlap,
        }

        client = await self._get_client()
        logger.debug(f"Roboflow request to {self.model_url} ({len(body)} base64 chars)")

        try:
            response = await client.post(
                self.model_url,
                params=params,
                content=body,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Roboflow request failed: {e}")
            raise UpstreamError(f"Roboflow API request failed: {e}")

        if not response.is_success:
            error = self._error_for_status(response)
            logger.error(f"Roboflow API returned {response.status_code}")
            raise error

        try:
            data = response.json()
        except ValueError:
            raise UpstreamError("Roboflow API returned an invalid JSON response")

        try:
            results = format_detection_results(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise UpstreamError(f"Roboflow API returned an unexpected response: {e}")

        logger.info(
            f"Roboflow detected {results['detectionCount']} object(s) "
            f"in {results['imageWidth']}x{results['imageHeight']} image"
        )
        return results


class WasteDetectionService:
    """Runs detection on uploaded images and on the stored images of reports."""

    def __init__(
        self,
        repository: ReportRepository,
        storage: ImageStorage,
        client: RoboflowClient,
        publisher: EventPublisher,
    ):
        self.repository = repository
        self.storage = storage
        self.client = client
        self.publisher = publisher

    async def analyze_image(self, images: List[UploadedImage]) -> Dict[str, Any]:
        """
        Detect waste in the first uploaded image and suggest a category.

        Raises:
            InvalidInputError: If no image was uploaded
            UpstreamError: If detection fails
        """
        if not images:
            raise InvalidInputError("Please upload an image to analyze")
        self.storage.validate(images[:1])

        results = await self.client.detect(images[0].data)
        results["suggestedCategory"] = map_to_category(results["summary"]["dominantClass"])
        return results

    async def analyze_multiple_images(self, image_paths: Iterable[Path]) -> Dict[str, Any]:
        """
        Detect waste in stored images one after another.

        Each detection is tagged with the index of its image. A failing
        image is recorded in ``imageResults`` and does not stop the rest.
        """
        paths = list(image_paths)
        results: List[Dict[str, Any]] = []

        for index, path in enumerate(paths):
            try:
                data = await asyncio.to_thread(Path(path).read_bytes)
                result = await self.client.detect(data)
                result["detections"] = [
                    {**detection, "imageIndex": index} for detection in result["detections"]
                ]
                results.append(result)
            except Exception as e:
                message = getattr(e, "message", None) or str(e)
                logger.error(f"Failed to analyze image {index}: {message}")
                results.append(
                    {"success": False, "error": message, "imageIndex": index, "detections": []}
                )

        all_detections = [d for result in results for d in result.get("detections", [])]
        analyzed = sum(1 for result in results if result.get("success"))

        return {
            "success": analyzed > 0,
            "totalImages": len(paths),
            "analyzedImages": analyzed,
            "totalDetections": len(all_detections),
            "detections": all_detections,
            "imageResults": results,
        }

    async def analyze_report(self, report_id: Any) -> Dict[str, Any]:
        """
        Run detection on every image of a report and store the annotations.

        Raises:
            NotFoundError: If the report does not exist
            InvalidInputError: If the report has no images
        """
        id = parse_report_id(report_id)
        report = await self.repository.get_by_id(id)
        if not report:
            raise NotFoundError("Report not found")
        if not report.images:
            raise InvalidInputError("Report has no images to analyze")

        paths = [self.storage.path_for(image["storageId"]) for image in report.images]
        results = await self.analyze_multiple_images(paths)

        summary = {
            "totalDetections": results["totalDetections"],
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "success": results["success"],
        }
        updated = await self.repository.set_detection_results(id, results["detections"], summary)
        if updated is None:
            raise NotFoundError("Report not found")
        await self.repository.commit()

        logger.info(
            f"Detection stored for report {id}: {results['analyzedImages']}/"
            f"{results['totalImages']} image(s), {results['totalDetections']} detection(s)"
        )

        try:
            await self.publisher.publish(
                ReportEvent.DETECTION_COMPLETE.value,
                {"reportId": str(id), "detectionResults": results},
            )
        except Exception as e:
            logger.error(f"Failed to publish {ReportEvent.DETECTION_COMPLETE.value}: {e}")

        return {"report": serialize_report(updated), "detectionResults": results}

    async def get_report_detections(self, report_id: Any) -> ReportDetectionResults:
        """Stored images and detection annotations of a report."""
        report = await self.repository.get_by_id(parse_report_id(report_id))
        if not report:
            raise NotFoundError("Report not found")

        return ReportDetectionResults(
            images=[ImageRef.model_validate(image) for image in report.images or []],
            detection_results=list(report.detection_results or []),
            detection_summary=report.detection_summary,
        )

    async def get_detection_stats(self) -> DetectionStats:
        """Detection statistics across every report with annotations."""
        return summarize_detection_stats(await self.repository.find_detection_results())
