"""Repository functions for learning-path documents.

One row per (user_id, subject); saving replaces the whole document.
"""

from __future__ import annotations

import json

import structlog

from learnpath.core.models import LearningPathProgress
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


def get_progress(user_id: str, subject: str) -> LearningPathProgress | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT data FROM student_progress WHERE user_id = ? AND subject = ?",
            (user_id, subject),
        ).fetchone()

    if row is None:
        return None

    return LearningPathProgress.from_dict(json.loads(row["data"]))


def save_progress(progress: LearningPathProgress) -> None:
    """Insert or replace the user's path for its subject."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO student_progress (user_id, subject, data, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, subject) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (
                progress.user_id,
                progress.subject,
                json.dumps(progress.to_dict()),
                progress.updated_at,
            ),
        )

    logger.debug(
        "progress.saved",
        user_id=progress.user_id,
        subject=progress.subject,
        progress_percentage=progress.progress_percentage,
    )


def list_progress(subject: str) -> dict[str, LearningPathProgress]:
    """Every stored path for a subject, keyed by user_id."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT data FROM student_progress WHERE subject = ?", (subject,)
        ).fetchall()

    result = {}
    for row in rows:
        progress = LearningPathProgress.from_dict(json.loads(row["data"]))
        result[progress.user_id] = progress
    return result
