"""
Authentication service: password accounts and JWT handling.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from wastewatch.config.settings import Settings, get_settings
from wastewatch.database.models.user import User, UserRole
from wastewatch.database.repositories.user import UserRepository
from wastewatch.services.errors import ForbiddenError, InvalidInputError, ServiceError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthError(ServiceError):
    """Authentication error."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code)


@dataclass
class VerifyResult:
    """Result of JWT verification."""

    user: User


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        """
        Initialize auth service.

        Args:
            session: SQLAlchemy async session
            settings: Settings to use (defaults to the global settings)
        """
        self.session = session
        self.user_repo = UserRepository(session)
        self.settings = settings or get_settings()

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str = UserRole.CITIZEN.value,
        authority_code: Optional[str] = None,
    ) -> Tuple[User, str]:
        """
        Create an account and sign a token for it.

        Raises:
            InvalidInputError: If the email is already registered
            ForbiddenError: If an authority account is requested with a wrong code
        """
        if await self.user_repo.get_by_email(email):
            raise InvalidInputError("User already exists")

        required_code = self.settings.authority_registration_code
        if role == UserRole.AUTHORITY.value and required_code and authority_code != required_code:
            logger.warning(f"Authority registration refused for {email}: bad code")
            raise ForbiddenError("Invalid authority registration code")

        user = await self.user_repo.create_user(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        await self.session.commit()

        logger.info(f"User registered: {user.email} ({user.role})")
        return user, self.create_jwt(user)

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Check credentials and sign a token.

        Raises:
            AuthError: If the credentials are wrong (401) or the account is deactivated (403)
        """
        user = await self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthError("Invalid credentials")

        if not user.is_active:
            raise AuthError("User account is deactivated", status_code=403)

        logger.info(f"User authenticated: {user.email}")
        return user, self.create_jwt(user)

    def create_jwt(self, user: User) -> str:
        """
        Create a JWT token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "role": user.role,
            "exp": now + timedelta(hours=self.settings.jwt_expire_hours),
            "iat": now,
        }

        return jwt.encode(
            payload,
            self.settings.jwt_secret_key,
            algorithm=self.settings.jwt_algorithm,
        )

    async def verify_jwt(self, token: str) -> VerifyResult:
        """
        Verify a JWT token and return the user.

        Raises:
            AuthError: If token is invalid or user not found
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise AuthError("Invalid or expired token")

        user_id = payload.get("sub")
        if not user_id:
            raise AuthError("Invalid token: missing user ID")

        try:
            user_uuid = UUID(user_id)
        except ValueError:
            raise AuthError("Invalid token: malformed user ID")

        user = await self.user_repo.get_by_id(user_uuid)
        if not user:
            raise AuthError("User not found")

        if not user.is_active:
            raise AuthError("User account is deactivated", status_code=403)

        return VerifyResult(user=user)
