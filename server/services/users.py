"""User profile management."""

from typing import Dict, Any, List, Optional

from sqlalchemy.exc import IntegrityError

from constants import ROLE_USER, USER_ROLES
from core.database import Database
from core.logging import get_logger
from models.auth import User

logger = get_logger(__name__)


class UserNotFoundError(LookupError):
    def __init__(self, user_id: str):
        super().__init__("User not found")
        self.user_id = user_id


class UserService:
    """CRUD over user profiles. Permission checks live in the routes."""

    def __init__(self, database: Database):
        self.database = database

    async def list_users(self) -> List[User]:
        return await self.database.list_users()

    async def get_user(self, user_id: str) -> User:
        user = await self.database.get_user(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def create_user(self, email: str, password: str, name: Optional[str] = None,
                          role: str = ROLE_USER, user_id: Optional[str] = None) -> User:
        """Create a profile with login credentials.

        Raises:
            ValueError: On unknown role or an email/id already in use
        """
        if role not in USER_ROLES:
            raise ValueError(f"Unknown role: {role}")
        if await self.database.get_user_by_email(email):
            raise ValueError("Email already registered")

        try:
            user = await self.database.create_user(
                User.create(email=email, password=password, name=name, role=role, user_id=user_id)
            )
        except IntegrityError:
            raise ValueError("User already exists")

        logger.info("User created", user_id=user.id, role=role)
        return user

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> User:
        """Apply a partial profile update; keys absent from ``fields`` are kept."""
        role = fields.get("role")
        if role is not None and role not in USER_ROLES:
            raise ValueError(f"Unknown role: {role}")

        user = await self.database.update_user(user_id, fields)
        if not user:
            raise UserNotFoundError(user_id)
        logger.info("User updated", user_id=user_id, fields=sorted(fields))
        return user

    async def delete_user(self, user_id: str) -> None:
        if not await self.database.delete_user(user_id):
            raise UserNotFoundError(user_id)
        logger.info("User deleted", user_id=user_id)
