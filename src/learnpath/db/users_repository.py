"""Repository functions for user profile documents."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import structlog

from learnpath.core.errors import AlreadyExistsError, NotFoundError
from learnpath.core.models import UserProfile
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


def insert_user(profile: UserProfile) -> None:
    """Register a new profile.

    Raises:
        AlreadyExistsError: If user_id is already registered
    """
    with get_db() as conn:
        existing = conn.execute(
            "SELECT 1 FROM users WHERE user_id = ?", (profile.user_id,)
        ).fetchone()
        if existing is not None:
            raise AlreadyExistsError(f"User already registered: {profile.user_id}")

        conn.execute(
            "INSERT INTO users (user_id, role, data, updated_at) VALUES (?, ?, ?, ?)",
            (profile.user_id, profile.role, json.dumps(profile.to_dict()), profile.updated_at),
        )

    logger.debug("users.inserted", user_id=profile.user_id, role=profile.role)


def get_user(user_id: str) -> UserProfile | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT data FROM users WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return None

    return UserProfile.from_dict(json.loads(row["data"]))


def require_user(user_id: str) -> UserProfile:
    """Get a profile or fail.

    Raises:
        NotFoundError: If the user is not registered
    """
    profile = get_user(user_id)
    if profile is None:
        raise NotFoundError(f"User not found: {user_id}")
    return profile


def update_user(profile: UserProfile) -> None:
    """Overwrite a stored profile.

    Raises:
        NotFoundError: If the user is not registered
    """
    profile.updated_at = datetime.now(timezone.utc).isoformat()

    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE users SET role = ?, data = ?, updated_at = ? WHERE user_id = ?",
            (profile.role, json.dumps(profile.to_dict()), profile.updated_at, profile.user_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"User not found: {profile.user_id}")

    logger.debug("users.updated", user_id=profile.user_id, level=profile.level)


def list_users(role: str | None = None) -> list[UserProfile]:
    """All profiles, optionally filtered by role, oldest first."""
    with get_db() as conn:
        if role is None:
            rows = conn.execute("SELECT data FROM users ORDER BY rowid").fetchall()
        else:
            rows = conn.execute(
                "SELECT data FROM users WHERE role = ? ORDER BY rowid", (role,)
            ).fetchall()

    return [UserProfile.from_dict(json.loads(row["data"])) for row in rows]
