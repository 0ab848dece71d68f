"""SQLAlchemy ORM models for database tables."""

import enum
from sqlalchemy import CheckConstraint, Column, Integer, String, DateTime
from sqlalchemy.sql import func
from .db import Base
from .config import settings


class Role(str, enum.Enum):
    """Roles a user can hold. Stored as plain strings."""
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """User model mapped to 'users' table."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(settings.USER_EMAIL_MAX_LENGTH), nullable=False, unique=True, index=True)
    name = Column(String(settings.USER_NAME_MAX_LENGTH), nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt digest
    role = Column(String(50), nullable=False, default=Role.USER.value, server_default=Role.USER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
