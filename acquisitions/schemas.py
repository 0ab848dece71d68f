"""Pydantic schemas for request/response validation and serialization."""

from datetime import datetime
from typing import Annotated

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .config import settings
from .models import Role
from .utils import normalize_email


# ==================== Error Schemas ====================

class ErrorResponse(BaseModel):
    """Standardized error response with code and message."""
    error: str
    message: str
    details: dict | list | None = None


class ErrorEnvelope(BaseModel):
    """Shape of every error body: ``{"detail": ErrorResponse}``."""
    detail: ErrorResponse


# ==================== Field Types ====================

NameStr = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=settings.USER_NAME_MIN_LENGTH,
        max_length=settings.USER_NAME_MAX_LENGTH,
    ),
]

PasswordStr = Annotated[
    str,
    Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=settings.PASSWORD_MAX_LENGTH),
]


def _clean_email(value):
    """Trim, lowercase and length-check an email before format validation."""
    if not isinstance(value, str):
        return value
    value = normalize_email(value)
    if "<" in value or ">" in value:
        # EmailStr would otherwise accept "Name <addr>" and keep only the address
        raise ValueError("Email must be a bare address without a display name")
    if len(value) > settings.USER_EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {settings.USER_EMAIL_MAX_LENGTH} characters")
    return value


EmailIn = Annotated[EmailStr, BeforeValidator(_clean_email)]


# ==================== User Schemas ====================

class UserOut(BaseModel):
    """Sanitized user projection. Never carries the password digest."""
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
    )

    id: int
    name: str
    email: str
    role: Role
    created_at: datetime
    updated_at: datetime


class UserResponse(BaseModel):
    message: str
    user: UserOut


class UserListResponse(BaseModel):
    message: str
    users: list[UserOut]
    count: int


class MessageResponse(BaseModel):
    message: str


class UserUpdate(BaseModel):
    """Partial update. At least one field must be present in the body."""
    model_config = ConfigDict(use_enum_values=True)

    name: NameStr | None = None
    email: EmailIn | None = None
    password: PasswordStr | None = None
    role: Role | None = None

    @model_validator(mode='after')
    def require_any_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self

    def changes(self) -> dict:
        """Fields the client actually sent with a non-null value."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


# ==================== Authentication Schemas ====================

class SignUpRequest(BaseModel):
    """Registration payload."""
    model_config = ConfigDict(use_enum_values=True)

    name: NameStr = Field(..., description="User's full name")
    email: EmailIn = Field(..., description="User's email address")
    password: PasswordStr = Field(..., description="User's password (6-128 characters)")
    role: Role = Field(Role.USER, description="Role of the new account")


class SignInRequest(BaseModel):
    """Schema for user login credentials."""
    email: EmailIn = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class AuthResponse(BaseModel):
    """Body returned by sign-up and sign-in; the token travels in the cookie."""
    message: str
    user: UserOut


class SessionClaims(BaseModel):
    """Identity facts embedded in a session token.

    ``iat`` and ``exp`` are only populated on claims returned by
    ``TokenService.verify``.
    """
    model_config = ConfigDict(use_enum_values=True)

    id: int = Field(..., gt=0)
    name: str
    email: str
    role: Role
    iat: int | None = None
    exp: int | None = None

    @classmethod
    def for_user(cls, user: UserOut) -> "SessionClaims":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value
