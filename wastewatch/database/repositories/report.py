"""Repository for report operations."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import (
    Date,
    Float,
    Select,
    Update,
    cast,
    delete,
    extract,
    func,
    literal,
    literal_column,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from wastewatch.database.models.report import Report, ReportStatus
from wastewatch.database.repositories.base import BaseRepository
from wastewatch.utils.geo_utils import EARTH_RADIUS_METERS, bounding_box

MAP_COLUMNS = (
    Report.id,
    Report.title,
    Report.category,
    Report.status,
    Report.severity,
    Report.latitude,
    Report.longitude,
    Report.address,
    Report.created_at,
)


@dataclass
class ReportFilters:
    """Conjunctive filters for report searches."""

    status: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[str] = None
    reporter_id: Optional[UUID] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_meters: Optional[float] = None

    @property
    def is_geospatial(self) -> bool:
        return (
            self.latitude is not None
            and self.longitude is not None
            and self.radius_meters is not None
        )


def distance_meters(latitude: float, longitude: float) -> ColumnElement:
    """
    SQL expression for the great-circle distance from a point to each report.

    Haversine formula evaluated by the database, in meters.
    """
    lat_rad = math.radians(latitude)
    lon_rad = math.radians(longitude)
    row_lat = func.radians(Report.latitude, type_=Float)
    row_lon = func.radians(Report.longitude, type_=Float)

    a = func.power(func.sin((row_lat - lat_rad) / 2, type_=Float), 2, type_=Float) + (
        math.cos(lat_rad)
        * func.cos(row_lat, type_=Float)
        * func.power(func.sin((row_lon - lon_rad) / 2, type_=Float), 2, type_=Float)
    )
    return (2 * EARTH_RADIUS_METERS) * func.asin(
        func.least(1.0, func.sqrt(a, type_=Float), type_=Float), type_=Float
    )


class ReportRepository(BaseRepository[Report]):
    """Repository for report CRUD, map and statistics queries."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Report)

    # Queries

    @staticmethod
    def _where_clauses(filters: ReportFilters) -> List[ColumnElement]:
        clauses: List[ColumnElement] = []

        if filters.status:
            clauses.append(Report.status == filters.status)
        if filters.category:
            clauses.append(Report.category == filters.category)
        if filters.severity:
            clauses.append(Report.severity == filters.severity)
        if filters.reporter_id:
            clauses.append(Report.reporter_id == filters.reporter_id)

        if filters.is_geospatial:
            min_lat, max_lat, min_lon, max_lon = bounding_box(
                filters.latitude, filters.longitude, filters.radius_meters
            )
            # Box prefilter uses the coordinate index; distance test is exact
            clauses.append(Report.latitude.between(min_lat, max_lat))
            clauses.append(Report.longitude.between(min_lon, max_lon))
            clauses.append(
                distance_meters(filters.latitude, filters.longitude) <= filters.radius_meters
            )

        return clauses

    def build_search_query(
        self, filters: ReportFilters, skip: int = 0, limit: int = 10
    ) -> Select:
        """
        Build the paginated search statement.

        Geospatial searches are ordered nearest first; all others newest
        first. The id breaks ties so pages never overlap.
        """
        query = (
            select(Report)
            .options(
                selectinload(Report.reporter),
                selectinload(Report.resolver),
            )
            .where(*self._where_clauses(filters))
        )

        if filters.is_geospatial:
            query = query.order_by(
                distance_meters(filters.latitude, filters.longitude),
                Report.created_at.desc(),
                Report.id,
            )
        else:
            query = query.order_by(Report.created_at.desc(), Report.id)

        return query.offset(skip).limit(limit)

    def build_count_query(self, filters: ReportFilters) -> Select:
        return select(func.count(Report.id)).where(*self._where_clauses(filters))

    async def find_reports(
        self, filters: ReportFilters, skip: int = 0, limit: int = 10
    ) -> List[Report]:
        """Get one page of reports matching the filters, with users loaded."""
        result = await self.session.execute(self.build_search_query(filters, skip, limit))
        return list(result.scalars().all())

    async def count_reports(self, filters: ReportFilters) -> int:
        """Count the reports matching the filters."""
        result = await self.session.execute(self.build_count_query(filters))
        return result.scalar_one()

    async def find_by_reporter(
        self, reporter_id: UUID, skip: int = 0, limit: int = 10
    ) -> List[Report]:
        """Get one page of a user's own reports, newest first."""
        return await self.find_reports(ReportFilters(reporter_id=reporter_id), skip, limit)

    async def count_by_reporter(self, reporter_id: UUID) -> int:
        return await self.count_reports(ReportFilters(reporter_id=reporter_id))

    async def get_by_id_with_relations(self, id: UUID) -> Optional[Report]:
        """Get a report by ID with reporter and resolver loaded."""
        result = await self.session.execute(
            select(Report)
            .where(Report.id == id)
            .options(
                selectinload(Report.reporter),
                selectinload(Report.resolver),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def build_map_query(self, status: Optional[str], limit: int) -> Select:
        query = select(*MAP_COLUMNS)
        if status:
            query = query.where(Report.status == status)
        return query.order_by(Report.created_at.desc()).limit(limit)

    async def find_for_map(self, status: Optional[str] = None, limit: int = 500) -> List[Any]:
        """Get the map projection of up to ``limit`` reports."""
        result = await self.session.execute(self.build_map_query(status, limit))
        return list(result.all())

    # Mutations

    async def create_report(
        self,
        reporter_id: UUID,
        title: str,
        description: str,
        latitude: float,
        longitude: float,
        address: str = "",
        category: str = "other",
        severity: str = "medium",
        images: Optional[List[Dict[str, str]]] = None,
    ) -> Report:
        """Create a new open report."""
        report = Report(
            reporter_id=reporter_id,
            title=title,
            description=description,
            latitude=latitude,
            longitude=longitude,
            address=address,
            category=category,
            severity=severity,
            images=images or [],
            status=ReportStatus.OPEN.value,
            resolution_notes="",
            resolution_images=[],
            detection_results=[],
        )
        return await self.create(report)

    def build_status_update(
        self,
        id: UUID,
        status: str,
        resolved_by_id: Optional[UUID] = None,
        resolution_notes: Optional[str] = None,
        resolution_images: Optional[List[Dict[str, str]]] = None,
    ) -> Update:
        """
        Build the single-statement status update.

        Resolution fields are written only when the new status is resolved;
        any other status leaves them as they are.
        """
        values: Dict[str, Any] = {"status": status, "updated_at": func.now()}

        if status == ReportStatus.RESOLVED.value:
            values["resolved_at"] = func.now()
            values["resolved_by_id"] = resolved_by_id
            values["resolution_notes"] = resolution_notes or ""
            if resolution_images:
                values["resolution_images"] = Report.resolution_images.op(
                    "||", return_type=JSONB
                )(literal(resolution_images, JSONB))

        return (
            update(Report)
            .where(Report.id == id)
            .values(**values)
            .returning(Report.id)
            .execution_options(synchronize_session=False)
        )

    async def update_status(
        self,
        id: UUID,
        status: str,
        resolved_by_id: Optional[UUID] = None,
        resolution_notes: Optional[str] = None,
        resolution_images: Optional[List[Dict[str, str]]] = None,
    ) -> Optional[Report]:
        """
        Atomically set the status of a report.

        Returns:
            The updated report with users loaded, or None if not found
        """
        result = await self.session.execute(
            self.build_status_update(
                id, status, resolved_by_id, resolution_notes, resolution_images
            )
        )
        if result.scalar_one_or_none() is None:
            return None
        return await self.get_by_id_with_relations(id)

    async def set_detection_results(
        self,
        id: UUID,
        detections: List[Dict[str, Any]],
        summary: Dict[str, Any],
    ) -> Optional[Report]:
        """Atomically store the detection annotations of a report."""
        result = await self.session.execute(
            update(Report)
            .where(Report.id == id)
            .values(
                detection_results=detections,
                detection_summary=summary,
                updated_at=func.now(),
            )
            .returning(Report.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            return None
        return await self.get_by_id_with_relations(id)

    async def delete_by_id(self, id: UUID) -> bool:
        """
        Delete a report by ID.

        Returns:
            True if deleted, False if not found
        """
        result = await self.session.execute(
            delete(Report).where(Report.id == id).returning(Report.id)
        )
        return result.scalar_one_or_none() is not None

    # Statistics

    def build_breakdown_query(self) -> Select:
        return select(
            Report.status, Report.category, Report.severity, func.count(Report.id)
        ).group_by(Report.status, Report.category, Report.severity)

    async def count_breakdown(self) -> Dict[str, Dict[str, int]]:
        """
        Count reports by status, by category and by severity.

        The three breakdowns come from one statement, so they always
        describe the same set of rows.
        """
        result = await self.session.execute(self.build_breakdown_query())
        breakdown: Dict[str, Dict[str, int]] = {"status": {}, "category": {}, "severity": {}}
        for status, category, severity, count in result.all():
            for column, value in (("status", status), ("category", category), ("severity", severity)):
                counts = breakdown[column]
                counts[value] = counts.get(value, 0) + count
        return breakdown

    def build_daily_trend_query(self, since: datetime) -> Select:
        # Literal time zone so SELECT and GROUP BY render the same expression
        day = cast(
            func.timezone(literal_column("'UTC'"), Report.created_at), Date
        ).label("day")
        return (
            select(day, func.count(Report.id).label("count"))
            .where(Report.created_at >= since)
            .group_by(day)
            .order_by(day)
        )

    async def daily_creation_trend(self, since: datetime) -> List[Tuple[Any, int]]:
        """Reports created per UTC calendar day since ``since``, ascending."""
        result = await self.session.execute(self.build_daily_trend_query(since))
        return [(day, count) for day, count in result.all()]

    def build_average_resolution_query(self) -> Select:
        return select(
            func.avg(extract("epoch", Report.resolved_at - Report.created_at))
        ).where(
            Report.status == ReportStatus.RESOLVED.value,
            Report.resolved_at.isnot(None),
        )

    async def average_resolution_seconds(self) -> Optional[float]:
        """Mean time from creation to resolution over resolved reports."""
        result = await self.session.execute(self.build_average_resolution_query())
        value = result.scalar_one_or_none()
        return float(value) if value is not None else None

    async def find_recent(self, limit: int = 5) -> List[Report]:
        """Most recently created reports with users loaded."""
        result = await self.session.execute(
            select(Report)
            .options(
                selectinload(Report.reporter),
                selectinload(Report.resolver),
            )
            .order_by(Report.created_at.desc(), Report.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_detection_results(self) -> List[Sequence[Dict[str, Any]]]:
        """Detection annotations of every report that has at least one."""
        result = await self.session.execute(
            select(Report.detection_results).where(
                func.jsonb_array_length(Report.detection_results) > 0
            )
        )
        return [row[0] for row in result.all()]
