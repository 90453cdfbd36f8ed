"""
Authentication router: registration, login and the current user.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from wastewatch.database.connection import get_db
from wastewatch.database.models.user import User
from wastewatch.middleware.auth import get_current_user
from wastewatch.models.auth_models import AuthData, LoginRequest, RegisterRequest, UserResponse
from wastewatch.models.base import ApiResponse
from wastewatch.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=ApiResponse[AuthData],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthData]:
    """
    Create an account.

    Authority accounts require the configured registration code, when one
    is configured.
    """
    auth_service = AuthService(db)
    user, token = await auth_service.register(
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role.value,
        authority_code=request.authority_code,
    )
    return ApiResponse[AuthData](
        data=AuthData(token=token, user=UserResponse.model_validate(user))
    )


@router.post("/login", response_model=ApiResponse[AuthData])
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthData]:
    """Exchange email and password for a bearer token."""
    auth_service = AuthService(db)
    user, token = await auth_service.login(request.email, request.password)
    return ApiResponse[AuthData](
        data=AuthData(token=token, user=UserResponse.model_validate(user))
    )


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[UserResponse]:
    """Get the authenticated user."""
    return ApiResponse[UserResponse](data=UserResponse.model_validate(current_user))
