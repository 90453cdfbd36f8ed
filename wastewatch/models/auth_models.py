"""
Authentication request and response models.
"""

from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from wastewatch.database.models.user import UserRole
from wastewatch.models.base import APIBaseModel, UTCDatetime


class RegisterRequest(APIBaseModel):
    """Request body for account registration."""

    model_config = {"str_strip_whitespace": True}

    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: EmailStr = Field(..., description="Login email")
    password: str = Field(..., min_length=6, max_length=128, description="Plain password")
    role: UserRole = Field(UserRole.CITIZEN, description="citizen or authority")
    authority_code: Optional[str] = Field(
        None, description="Registration code required for authority accounts"
    )


class LoginRequest(APIBaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(APIBaseModel):
    """User information response."""

    id: UUID = Field(..., description="User UUID")
    name: str = Field(..., description="User display name")
    email: str = Field(..., description="User email")
    role: str = Field(..., description="citizen or authority")
    created_at: Optional[UTCDatetime] = None


class AuthData(APIBaseModel):
    """Token plus the authenticated user."""

    token: str = Field(..., description="JWT bearer token")
    user: UserResponse
