"""Password hashing and signed session tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from pydantic import ValidationError

from .config import Settings
from .logger import logger
from .result import Err, ErrorKind, Ok, Result
from .schemas import SessionClaims

# bcrypt only consumes the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72
MIN_SECRET_KEY_LENGTH = 32


# ==================== Password Hashing ====================

def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt for secure storage."""
    password_bytes = password.encode('utf-8')[:BCRYPT_MAX_BYTES]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain text password against a stored digest.

    A malformed digest counts as a mismatch rather than an error.
    """
    password_bytes = plain_password.encode('utf-8')[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except (ValueError, TypeError):
        logger.warning("Stored password digest is not a valid bcrypt hash")
        return False


# ==================== Session Tokens ====================

@dataclass(frozen=True)
class TokenConfig:
    """Signing parameters, fixed for the lifetime of the process."""
    secret_key: str
    algorithm: str = "HS256"
    expires_minutes: int = 15

    def __post_init__(self):
        if not self.secret_key or len(self.secret_key) < MIN_SECRET_KEY_LENGTH:
            raise ValueError(
                f"Token secret key must be at least {MIN_SECRET_KEY_LENGTH} characters long"
            )
        if self.expires_minutes <= 0:
            raise ValueError("Token lifetime must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expires_minutes=settings.JWT_EXPIRATION_MINUTES,
        )

    @property
    def max_age_seconds(self) -> int:
        return self.expires_minutes * 60


class TokenService:
    """Signs session claims into JWTs and verifies them."""

    def __init__(self, config: TokenConfig):
        self.config = config

    def sign(self, claims: SessionClaims, expires_delta: timedelta | None = None) -> str:
        """Encode identity claims plus ``iat``/``exp`` into a signed token."""
        issued_at = datetime.now(timezone.utc)
        expire = issued_at + (expires_delta or timedelta(minutes=self.config.expires_minutes))

        to_encode = claims.model_dump(include={"id", "name", "email", "role"})
        to_encode.update({"iat": issued_at, "exp": expire})

        return jwt.encode(to_encode, self.config.secret_key, algorithm=self.config.algorithm)

    def verify(self, token: str) -> Result[SessionClaims]:
        """Validate signature, expiry and claim shape.

        Returns ``Err(INVALID_TOKEN)`` for tampered, malformed or expired tokens.
        """
        try:
            payload = jwt.decode(token, self.config.secret_key, algorithms=[self.config.algorithm])
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            return Err(ErrorKind.INVALID_TOKEN, "Invalid or expired authentication token")

        try:
            claims = SessionClaims.model_validate(payload)
        except ValidationError:
            return Err(ErrorKind.INVALID_TOKEN, "Token payload is invalid")

        if claims.exp is None:
            return Err(ErrorKind.INVALID_TOKEN, "Token has no expiry")

        return Ok(claims)
