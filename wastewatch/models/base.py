"""
Base Pydantic models with common configurations.

Provides a base model that ensures all datetime fields are serialized
with UTC timezone and all field names are exposed in camelCase for the
front end.
"""

from datetime import datetime, timezone
from typing import Annotated, Generic, List, TypeVar

from pydantic import BaseModel, Field, PlainSerializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def serialize_datetime_utc(dt: datetime) -> str:
    """
    Serialize datetime to ISO format with UTC timezone.

    If the datetime is naive (no timezone), assumes it's UTC and adds the timezone.
    """
    if dt is None:
        return None

    # If datetime is naive, assume it's UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


# Type alias for datetime fields that should be serialized with UTC timezone
UTCDatetime = Annotated[datetime, PlainSerializer(serialize_datetime_utc, return_type=str)]


class APIBaseModel(BaseModel):
    """
    Base model for API requests and responses.

    Fields are declared in snake_case and exposed as camelCase
    (``created_at`` -> ``createdAt``); either name is accepted on input.
    """

    model_config = {
        "from_attributes": True,  # Allow ORM model conversion
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class ApiResponse(APIBaseModel, Generic[T]):
    """Success envelope: ``{"success": true, "data": ...}``."""

    success: bool = True
    data: T


class PaginatedResponse(APIBaseModel, Generic[T]):
    """Success envelope for one page of a list."""

    success: bool = True
    count: int = Field(..., description="Number of items on this page")
    total: int = Field(..., description="Number of items matching the query")
    total_pages: int = Field(..., description="ceil(total / limit)")
    current_page: int = Field(..., description="1-based page number")
    data: List[T]


class ListResponse(APIBaseModel, Generic[T]):
    """Success envelope for an unpaginated list."""

    success: bool = True
    count: int
    data: List[T]


class MessageResponse(APIBaseModel):
    success: bool = True
    message: str
