"""
User repository for authentication.
"""
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wastewatch.database.models.user import User, UserRole
from wastewatch.database.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model with authentication-specific methods."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address (case-insensitive).

        Args:
            email: User's email address

        Returns:
            User instance or None if not found
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: str = UserRole.CITIZEN.value,
    ) -> User:
        """Create a new user account."""
        user = User(
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        return await self.create(user)
