"""Repository functions for analytics documents."""

from __future__ import annotations

import json

import structlog

from learnpath.core.models import Analytics
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


def get_analytics(user_id: str) -> Analytics | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT data FROM analytics WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return None

    return Analytics.from_dict(json.loads(row["data"]))


def save_analytics(analytics: Analytics) -> None:
    """Insert or replace the user's analytics document."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO analytics (user_id, data, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (analytics.user_id, json.dumps(analytics.to_dict()), analytics.updated_at),
        )

    logger.debug("analytics.saved", user_id=analytics.user_id)
