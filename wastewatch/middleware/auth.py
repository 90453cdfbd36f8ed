"""
Authentication dependencies for FastAPI.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wastewatch.database.connection import get_db
from wastewatch.database.models.user import User
from wastewatch.middleware.request_id import set_user_id
from wastewatch.services.auth_service import AuthError, AuthService

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def _authenticate(credentials: HTTPAuthorizationCredentials, db: AsyncSession) -> User:
    auth_service = AuthService(db)

    try:
        verify_result = await auth_service.verify_jwt(credentials.credentials)
    except AuthError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = verify_result.user
    set_user_id(str(user.id))
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or token is invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await _authenticate(credentials, db)


async def require_authority(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    FastAPI dependency that only admits authority accounts.

    Raises:
        HTTPException: 403 if the user is a citizen
    """
    if not current_user.is_authority:
        logger.warning(f"Authority route refused for user {current_user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User role '{current_user.role}' is not authorized to access this route",
        )
    return current_user
