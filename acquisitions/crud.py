"""Database CRUD operations for the users table."""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from . import db
from .models import User
from .logger import logger
from .utils import utc_now


# ==================== Helper Functions ====================

def _create_user_snapshot(user: User) -> User:
    """Create a detached copy of a user before deletion."""
    return User(
        id=user.id,
        name=user.name,
        email=user.email,
        password=user.password,
        role=user.role,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


# ==================== Single User Operations ====================


async def insert_user(name: str, email: str, password_hash: str, role: str) -> User:
    """Insert a new user. Raises ValueError on duplicate email."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = User(name=name, email=email, password=password_hash, role=role)
                session.add(user)
            await session.refresh(user)  # load server-side timestamps
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected: {email}")
            raise ValueError("duplicate email") from e


async def select_user_by_email(email: str) -> User | None:
    """Retrieve a user by email address."""
    async with db.async_session() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalars().first()


async def select_user(user_id: int) -> User | None:
    """Retrieve a user by ID."""
    async with db.async_session() as session:
        return await session.get(User, user_id)


async def list_users() -> list[User]:
    """Return every user ordered by id."""
    async with db.async_session() as session:
        result = await session.execute(select(User).order_by(User.id.asc()))
        users = list(result.scalars().all())
        logger.debug(f"Query executed: returned {len(users)} users")
        return users


async def update_user(user_id: int, fields: dict) -> User | None:
    """Apply ``fields`` to a user and bump ``updated_at``.

    Returns None if the user does not exist. Raises ValueError on duplicate email.
    """
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = await session.get(User, user_id)
                if user is None:
                    return None
                for key, value in fields.items():
                    setattr(user, key, value)
                user.updated_at = utc_now()
            return user
        except IntegrityError as e:
            logger.debug(f"Update of user id={user_id} rejected: duplicate email")
            raise ValueError("duplicate email") from e


async def delete_user(user_id: int) -> User | None:
    """Delete a user by ID and return a snapshot of the deleted row."""
    async with db.async_session() as session:
        async with session.begin():
            user = await session.get(User, user_id)
            if not user:
                return None
            snapshot = _create_user_snapshot(user)
            await session.delete(user)
        return snapshot
