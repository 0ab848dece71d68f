"""User store: business rules over the users table.

Every operation returns a ``Result``: ``Ok`` with a sanitized ``UserOut`` (or a
list of them) or ``Err`` with one of the ``ErrorKind`` values. Password
digests never leave this module. Storage and hashing failures that are not a
recognized outcome are logged here and surface as ``ErrorKind.INTERNAL``.
"""

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from . import crud
from .auth import hash_password, verify_password
from .logger import logger
from .models import Role, User
from .result import Err, ErrorKind, Ok, Result
from .schemas import UserOut
from .utils import normalize_email

UPDATABLE_FIELDS = ("name", "email", "password", "role")


# ==================== Helper Functions ====================


def _convert_to_user_out(user: User) -> UserOut:
    """Convert ORM User model to the sanitized UserOut schema."""
    return UserOut.model_validate(user)


def _internal_error(action: str) -> Err:
    return Err(ErrorKind.INTERNAL, f"Unable to {action}")


def _duplicate_email(email: str) -> Err:
    return Err(
        ErrorKind.DUPLICATE_EMAIL,
        "User with this email already exists",
        {"email": email},
    )


def _not_found(user_id: int) -> Err:
    return Err(
        ErrorKind.NOT_FOUND,
        f"User with ID {user_id} does not exist",
        {"user_id": user_id},
    )


# ==================== Authentication ====================


async def create_user(name: str, email: str, password: str, role: str = Role.USER.value) -> Result[UserOut]:
    """Register a new user with a hashed password."""
    email = normalize_email(email)
    role = Role(role).value
    logger.info(f"Creating user: {email} role={role}")

    try:
        password_hash = await run_in_threadpool(hash_password, password)
    except (ValueError, TypeError):
        logger.error(f"Password hashing failed for {email}", exc_info=True)
        return _internal_error("create user")

    try:
        user = await crud.insert_user(name.strip(), email, password_hash, role)
    except ValueError:
        logger.warning(f"Registration failed - email already exists: {email}")
        return _duplicate_email(email)
    except SQLAlchemyError:
        logger.error(f"Database error while creating user {email}", exc_info=True)
        return _internal_error("create user")

    logger.info(f"User created: id={user.id} email={user.email}")
    return Ok(_convert_to_user_out(user))


async def authenticate_user(email: str, password: str) -> Result[UserOut]:
    """Check credentials. Unknown email and wrong password are indistinguishable."""
    email = normalize_email(email)
    logger.info(f"Authentication attempt for user: {email}")

    try:
        user = await crud.select_user_by_email(email)
    except SQLAlchemyError:
        logger.error(f"Database error while authenticating {email}", exc_info=True)
        return _internal_error("authenticate user")

    if user is None:
        logger.warning(f"Authentication failed - user not found: {email}")
        return Err(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password")

    if not await run_in_threadpool(verify_password, password, user.password):
        logger.warning(f"Authentication failed for user: {email}")
        return Err(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password")

    logger.info(f"Authentication successful for user: {email} (id={user.id})")
    return Ok(_convert_to_user_out(user))


# ==================== User Operations ====================


async def list_users() -> Result[list[UserOut]]:
    """Return every user, sanitized, in id order."""
    try:
        users = await crud.list_users()
    except SQLAlchemyError:
        logger.error("Database error while listing users", exc_info=True)
        return _internal_error("fetch users")
    return Ok([_convert_to_user_out(u) for u in users])


async def get_user(user_id: int) -> Result[UserOut]:
    logger.debug(f"Fetching user: id={user_id}")
    try:
        user = await crud.select_user(user_id)
    except SQLAlchemyError:
        logger.error(f"Database error while fetching user id={user_id}", exc_info=True)
        return _internal_error("fetch user")

    if user is None:
        logger.warning(f"User not found: id={user_id}")
        return _not_found(user_id)
    return Ok(_convert_to_user_out(user))


async def update_user(user_id: int, changes: dict) -> Result[UserOut]:
    """Apply a partial update.

    Unknown keys and ``None`` values are dropped. If nothing is left the row is
    returned untouched, ``updated_at`` included.
    """
    try:
        existing = await crud.select_user(user_id)
    except SQLAlchemyError:
        logger.error(f"Database error while loading user id={user_id}", exc_info=True)
        return _internal_error("update user")

    if existing is None:
        logger.warning(f"Cannot update - user not found: id={user_id}")
        return _not_found(user_id)

    fields = {k: v for k, v in (changes or {}).items() if k in UPDATABLE_FIELDS and v is not None}
    if not fields:
        logger.debug(f"Nothing to update for user id={user_id}")
        return Ok(_convert_to_user_out(existing))

    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
    if "name" in fields:
        fields["name"] = fields["name"].strip()
    if "role" in fields:
        fields["role"] = Role(fields["role"]).value
    if "password" in fields:
        try:
            fields["password"] = await run_in_threadpool(hash_password, fields["password"])
        except (ValueError, TypeError):
            logger.error(f"Password hashing failed for user id={user_id}", exc_info=True)
            return _internal_error("update user")

    try:
        user = await crud.update_user(user_id, fields)
    except ValueError:
        logger.warning(f"Update rejected - email already exists: {fields.get('email')}")
        return _duplicate_email(fields.get("email", ""))
    except SQLAlchemyError:
        logger.error(f"Database error while updating user id={user_id}", exc_info=True)
        return _internal_error("update user")

    if user is None:
        # Deleted between the existence check and the write
        return _not_found(user_id)

    logger.info(f"User updated: id={user_id} fields={sorted(fields)}")
    return Ok(_convert_to_user_out(user))


async def delete_user(user_id: int) -> Result[UserOut]:
    """Delete a user and return the row as it was just before deletion."""
    logger.info(f"Deleting user: id={user_id}")
    try:
        user = await crud.delete_user(user_id)
    except SQLAlchemyError:
        logger.error(f"Database error while deleting user id={user_id}", exc_info=True)
        return _internal_error("delete user")

    if user is None:
        logger.warning(f"Cannot delete - user not found: id={user_id}")
        return _not_found(user_id)

    logger.info(f"User deleted successfully: id={user.id} email={user.email}")
    return Ok(_convert_to_user_out(user))
