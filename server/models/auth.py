"""User account and profile models."""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any
from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import func
import bcrypt

from constants import ROLE_USER
from models.database import utc_now


class User(SQLModel, table=True):
    """User account with its public profile fields."""

    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=64)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=1000)
    role: str = Field(default=ROLE_USER, max_length=20)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), onupdate=utc_now)
    )
    last_login: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    def set_password(self, password: str) -> None:
        """Hash and set password using bcrypt."""
        salt = bcrypt.gensalt()
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def verify_password(self, password: str) -> bool:
        """Verify password against stored hash."""
        return bcrypt.checkpw(
            password.encode('utf-8'),
            self.password_hash.encode('utf-8')
        )

    def to_profile(self) -> Dict[str, Any]:
        """Public profile fields returned by the users API."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "avatar_url": self.avatar_url,
            "role": self.role,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def create(cls, email: str, password: str, name: Optional[str] = None,
               role: str = ROLE_USER, user_id: Optional[str] = None) -> "User":
        """Factory method to create a user with hashed password."""
        user = cls(
            email=email.lower().strip(),
            password_hash="",  # Will be set below
            name=name.strip() if name else None,
            role=role,
        )
        if user_id:
            user.id = user_id
        user.set_password(password)
        return user
