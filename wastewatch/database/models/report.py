"""
Report model for citizen-submitted waste sightings.
"""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wastewatch.database.connection import Base

if TYPE_CHECKING:
    from wastewatch.database.models.user import User


class ReportStatus(str, Enum):
    """Status of a report. Any state may move to any other."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class ReportCategory(str, Enum):
    """Kind of waste reported."""

    PLASTIC = "plastic"
    ORGANIC = "organic"
    HAZARDOUS = "hazardous"
    ELECTRONIC = "electronic"
    CONSTRUCTION = "construction"
    OTHER = "other"


class ReportSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _in_enum(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class Report(Base):
    """
    Waste report with location, images and resolution details.

    Coordinates are stored as a latitude/longitude pair and exposed in
    GeoJSON order ([longitude, latitude]). Image references and detection
    annotations are kept as JSONB lists.
    """

    __tablename__ = "reports"

    id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    reporter_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE")
    )

    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(String(1000))

    # [{"url": ..., "storageId": ...}]
    images: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONB, default=list, server_default=text("'[]'::jsonb")
    )

    # Location (immutable after creation)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    address: Mapped[str] = mapped_column(String(500), default="")

    category: Mapped[str] = mapped_column(
        String(20), default=ReportCategory.OTHER.value, index=True
    )
    severity: Mapped[str] = mapped_column(
        String(10), default=ReportSeverity.MEDIUM.value
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ReportStatus.OPEN.value, index=True
    )

    # Resolution details, stamped when the status becomes resolved
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolved_by_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    resolution_notes: Mapped[str] = mapped_column(Text, default="")
    resolution_images: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONB, default=list, server_default=text("'[]'::jsonb")
    )

    # Waste detection annotations (written by the detection service only)
    detection_results: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONB, default=list, server_default=text("'[]'::jsonb")
    )
    detection_summary: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONB, nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    reporter: Mapped["User"] = relationship("User", foreign_keys=[reporter_id])
    resolver: Mapped[Optional["User"]] = relationship("User", foreign_keys=[resolved_by_id])

    __table_args__ = (
        Index("idx_reports_location", "latitude", "longitude"),
        Index("idx_reports_status_created", "status", "created_at"),
        Index("idx_reports_reporter", "reporter_id"),
        CheckConstraint(_in_enum("status", ReportStatus), name="ck_reports_status"),
        CheckConstraint(_in_enum("category", ReportCategory), name="ck_reports_category"),
        CheckConstraint(_in_enum("severity", ReportSeverity), name="ck_reports_severity"),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_reports_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_reports_longitude"),
    )

    @property
    def coordinates(self) -> List[float]:
        """Location in GeoJSON order: [longitude, latitude]."""
        return [self.longitude, self.latitude]

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, status='{self.status}', reporter_id={self.reporter_id})>"
