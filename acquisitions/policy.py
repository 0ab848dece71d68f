"""Authorization decisions for user endpoints.

``authorize`` is a pure function of the caller's verified claims and the
requested action; it never touches storage. Rules are applied in order:

1. no caller                                   -> UNAUTHORIZED
2. admin-only action, caller not admin         -> FORBIDDEN
3. self-or-admin action on someone else        -> FORBIDDEN
4. changes include ``role``, caller not admin  -> FORBIDDEN
5. otherwise                                   -> Ok(caller)

Rule 4 is independent of ownership: a non-admin may not change any role,
including their own.
"""

import enum
from collections.abc import Mapping
from typing import Any

from .result import Err, ErrorKind, Ok, Result
from .schemas import SessionClaims


class Action(str, enum.Enum):
    READ_SELF_OR_ADMIN = "read-self-or-admin"
    WRITE_SELF_OR_ADMIN = "write-self-or-admin"
    ADMIN_ONLY = "admin-only"


SELF_OR_ADMIN_ACTIONS = frozenset({Action.READ_SELF_OR_ADMIN, Action.WRITE_SELF_OR_ADMIN})


def authorize(
    caller: SessionClaims | None,
    action: Action,
    target_id: int | None = None,
    changes: Mapping[str, Any] | None = None,
) -> Result[SessionClaims]:
    """Decide whether ``caller`` may perform ``action`` on ``target_id``."""
    if caller is None:
        return Err(ErrorKind.UNAUTHORIZED, "Authentication required")

    if action == Action.ADMIN_ONLY and not caller.is_admin:
        return Err(ErrorKind.FORBIDDEN, "Admin access required")

    if action in SELF_OR_ADMIN_ACTIONS and caller.id != target_id and not caller.is_admin:
        return Err(
            ErrorKind.FORBIDDEN,
            "You can only access your own account",
            {"user_id": target_id},
        )

    if changes and changes.get("role") is not None and not caller.is_admin:
        return Err(ErrorKind.FORBIDDEN, "Only admin can update role")

    return Ok(caller)
