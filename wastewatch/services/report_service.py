"""
Report lifecycle service.

Creates, lists, updates and deletes reports. Authorization rules are checked
before any mutation, every mutation is a single statement, and each
successful mutation is published to the real-time channel. Publishing is
best effort: the outcome of a mutation never depends on it.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import UUID

from wastewatch.database.models.report import (
    Report,
    ReportCategory,
    ReportSeverity,
    ReportStatus,
)
from wastewatch.database.models.user import User
from wastewatch.database.repositories.report import ReportFilters, ReportRepository
from wastewatch.models.report_models import ReportCreate, serialize_report
from wastewatch.services.errors import ForbiddenError, InvalidInputError, NotFoundError
from wastewatch.services.event_broadcaster import EventPublisher, ReportEvent
from wastewatch.services.image_storage import ImageStorage, UploadedImage

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a paginated query."""

    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def parse_report_id(report_id: Any) -> UUID:
    """
    Parse a report id; ids that are not UUIDs cannot exist.

    Raises:
        NotFoundError: If the id is malformed
    """
    if isinstance(report_id, UUID):
        return report_id
    try:
        return UUID(str(report_id))
    except ValueError:
        raise NotFoundError("Report not found")


def _check_choice(field: str, value: Optional[str], enum_cls) -> Optional[str]:
    if value is None or value == "":
        return None
    allowed = [member.value for member in enum_cls]
    if value not in allowed:
        raise InvalidInputError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(allowed)}"
        )
    return value


def _check_pagination(page: int, limit: int) -> None:
    if page < 1:
        raise InvalidInputError("Page must be 1 or greater")
    if limit < 1:
        raise InvalidInputError("Limit must be 1 or greater")


def _parse_coordinate(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError("Latitude and longitude must be numeric")
    if not math.isfinite(number):
        raise InvalidInputError("Latitude and longitude must be numeric")
    return number


class ReportService:
    """Service for the report lifecycle."""

    def __init__(
        self,
        repository: ReportRepository,
        storage: ImageStorage,
        publisher: EventPublisher,
    ):
        self.repository = repository
        self.storage = storage
        self.publisher = publisher

    async def _publish(self, event: ReportEvent, payload: Any) -> None:
        try:
            await self.publisher.publish(event.value, payload)
        except Exception as e:
            logger.error(f"Failed to publish {event.value}: {e}")

    async def create(
        self,
        user: User,
        fields: Dict[str, Any],
        images: Optional[List[UploadedImage]] = None,
    ) -> Report:
        """
        Create an open report owned by the caller.

        Coordinates are checked first, then the remaining fields; images are
        only stored once every field is valid.

        Raises:
            InvalidInputError: Missing or non-numeric coordinates, bad images
            pydantic.ValidationError: Fields rejected by the report schema
        """
        images = images or []
        latitude = fields.get("latitude")
        longitude = fields.get("longitude")
        if latitude in (None, "") or longitude in (None, ""):
            raise InvalidInputError("Please provide location coordinates")

        data = {key: value for key, value in fields.items() if value is not None}
        data["latitude"] = _parse_coordinate(latitude)
        data["longitude"] = _parse_coordinate(longitude)
        report_data = ReportCreate.model_validate(data)

        self.storage.validate(images)
        image_refs = await self.storage.save_all(images)

        try:
            report = await self.repository.create_report(
                reporter_id=user.id,
                title=report_data.title,
                description=report_data.description,
                latitude=report_data.latitude,
                longitude=report_data.longitude,
                address=report_data.address,
                category=report_data.category.value,
                severity=report_data.severity.value,
                images=image_refs,
            )
            await self.repository.commit()
        except Exception:
            self.storage.delete_all(image_refs)
            raise

        report = await self.repository.get_by_id_with_relations(report.id)
        logger.info(
            f"Report {report.id} created by {user.id} at "
            f"({report_data.latitude}, {report_data.longitude}) with {len(image_refs)} image(s)"
        )

        await self._publish(ReportEvent.NEW_REPORT, serialize_report(report))
        return report

    async def list(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        severity: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius: Optional[float] = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
    ) -> Page[Report]:
        """
        List reports matching every given filter.

        The radius filter applies only when latitude, longitude and radius
        (meters) are all given; results are then ordered nearest first,
        otherwise newest first.
        """
        _check_pagination(page, limit)
        filters = ReportFilters(
            status=_check_choice("status", status, ReportStatus),
            category=_check_choice("category", category, ReportCategory),
            severity=_check_choice("severity", severity, ReportSeverity),
        )

        if latitude is not None and longitude is not None and radius is not None:
            if radius < 0:
                raise InvalidInputError("Radius must not be negative")
            filters.latitude = latitude
            filters.longitude = longitude
            filters.radius_meters = radius

        skip = (page - 1) * limit
        items = await self.repository.find_reports(filters, skip=skip, limit=limit)
        total = await self.repository.count_reports(filters)
        return Page(items=items, total=total, page=page, limit=limit)

    async def get(self, report_id: Any) -> Report:
        """
        Get a report with reporter and resolver populated.

        Raises:
            NotFoundError: If the id is malformed or unknown
        """
        report = await self.repository.get_by_id_with_relations(parse_report_id(report_id))
        if not report:
            raise NotFoundError("Report not found")
        return report

    async def update_status(
        self,
        user: User,
        report_id: Any,
        status: Optional[str],
        resolution_notes: Optional[str] = None,
        resolution_images: Optional[List[UploadedImage]] = None,
    ) -> Report:
        """
        Set the status of a report (authorities only).

        Moving to resolved stamps the resolution time, the resolving user and
        the notes, and appends any uploaded resolution images. Other statuses
        leave earlier resolution details in place.

        Raises:
            ForbiddenError: If the caller is not an authority
            InvalidInputError: If the status is missing or unknown
            NotFoundError: If the report does not exist
        """
        if not user.is_authority:
            logger.warning(f"Status update of {report_id} refused for citizen {user.id}")
            raise ForbiddenError("Only authorities can update report status")

        id = parse_report_id(report_id)
        if not status:
            raise InvalidInputError("Please provide a status")
        _check_choice("status", status, ReportStatus)

        resolving = status == ReportStatus.RESOLVED.value
        resolution_images = resolution_images or []
        image_refs: List[Dict[str, str]] = []
        if resolving and resolution_images:
            self.storage.validate(resolution_images)
            image_refs = await self.storage.save_all(resolution_images)

        try:
            report = await self.repository.update_status(
                id,
                status,
                resolved_by_id=user.id if resolving else None,
                resolution_notes=resolution_notes if resolving else None,
                resolution_images=image_refs or None,
            )
            if report is None:
                raise NotFoundError("Report not found")
            await self.repository.commit()
        except Exception:
            self.storage.delete_all(image_refs)
            raise

        logger.info(f"Report {id} set to {status} by {user.id}")
        await self._publish(ReportEvent.REPORT_UPDATED, serialize_report(report))
        return report

    async def delete(self, user: User, report_id: Any) -> UUID:
        """
        Delete a report and, best effort, its stored images.

        Citizens may delete only their own reports; authorities any report.

        Raises:
            NotFoundError: If the report does not exist
            ForbiddenError: If a citizen does not own the report
        """
        id = parse_report_id(report_id)
        report = await self.repository.get_by_id(id)
        if not report:
            raise NotFoundError("Report not found")

        if not user.is_authority and report.reporter_id != user.id:
            logger.warning(f"Delete of report {id} refused for user {user.id}")
            raise ForbiddenError("Not authorized to delete this report")

        refs = list(report.images or []) + list(report.resolution_images or [])
        removed = self.storage.delete_all(refs)

        if not await self.repository.delete_by_id(id):
            raise NotFoundError("Report not found")
        await self.repository.commit()

        logger.info(f"Report {id} deleted by {user.id} ({removed}/{len(refs)} image files removed)")
        await self._publish(ReportEvent.REPORT_DELETED, str(id))
        return id

    async def list_mine(
        self,
        user: User,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
    ) -> Page[Report]:
        """The caller's own reports, newest first."""
        _check_pagination(page, limit)
        skip = (page - 1) * limit
        items = await self.repository.find_by_reporter(user.id, skip=skip, limit=limit)
        total = await self.repository.count_by_reporter(user.id)
        return Page(items=items, total=total, page=page, limit=limit)
