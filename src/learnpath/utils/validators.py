"""Input validation helpers for registration."""

import re

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_email(email: str) -> bool:
    """Validate email format. Empty string is valid (optional field)."""
    if not email:
        return True
    return bool(EMAIL_PATTERN.match(email))


def validate_user_id(user_id: str) -> bool:
    """User ids are 1-64 letters, digits, underscores or hyphens."""
    return bool(USER_ID_PATTERN.match(user_id))
