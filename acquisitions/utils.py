"""Small helpers shared by the schema, store and route layers."""

from datetime import datetime, timezone


def normalize_email(email: str) -> str:
    """Lowercase an email address and strip surrounding whitespace."""
    return email.strip().lower()


def utc_now() -> datetime:
    """Timezone-aware current time, used for ``updated_at`` and health output."""
    return datetime.now(timezone.utc)
