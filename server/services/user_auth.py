"""User authentication service with bearer JWT handling."""

from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from constants import ROLE_ADMIN, ROLE_USER
from core.config import Settings
from core.database import Database
from core.logging import get_logger
from models.auth import User

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


class UserAuthService:
    """Handles user registration, login and JWT token management."""

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings
        self._algorithm = settings.jwt_algorithm

    async def register(
        self, email: str, password: str, name: Optional[str] = None
    ) -> tuple[Optional[User], Optional[str]]:
        """
        Register a new user. The first account becomes an admin.
        Returns (user, None) on success, (None, error_message) on failure.
        """
        if await self.database.get_user_by_email(email):
            return None, "Email already registered"

        if len(password) < MIN_PASSWORD_LENGTH:
            return None, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

        role = ROLE_ADMIN if await self.database.count_users() == 0 else ROLE_USER
        user = await self.database.create_user(
            User.create(email=email, password=password, name=name, role=role)
        )

        logger.info("User registered", user_id=user.id, role=role)
        return user, None

    async def login(
        self, email: str, password: str
    ) -> tuple[Optional[User], Optional[str]]:
        """
        Authenticate user and return user object.
        Returns (user, None) on success, (None, error_message) on failure.
        """
        user = await self.database.get_user_by_email(email)
        if not user or not user.verify_password(password):
            return None, "Invalid email or password"

        if not user.is_active:
            return None, "Account is disabled"

        await self.database.update_user(user.id, {"last_login": datetime.now(timezone.utc)})

        logger.info("User logged in", user_id=user.id)
        return user, None

    def create_access_token(self, user: User) -> str:
        """Create JWT access token for user."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "email": user.email,
            "role": user.role,
            "exp": now + timedelta(minutes=self.settings.jwt_expire_minutes),
            "iat": now,
        }
        return jwt.encode(payload, self.settings.jwt_secret_key, algorithm=self._algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify JWT token and return payload.
        Returns None if token is invalid or expired.
        """
        try:
            return jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self._algorithm]
            )
        except JWTError as e:
            logger.debug("Token verification failed", error=str(e))
            return None

    async def get_current_user(self, token: str) -> Optional[User]:
        """Resolve an active user from a bearer token."""
        payload = self.verify_token(token)
        if not payload:
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        user = await self.database.get_user(str(user_id))
        if not user or not user.is_active:
            return None
        return user
