"""Repository functions for the append-only test attempt log.

Attempts are inserted once and never updated. Queries return newest first.
"""

from __future__ import annotations

import json

import structlog

from learnpath.core.models import TestAttempt
from learnpath.db.database import get_db

logger = structlog.get_logger(__name__)


def insert_attempt(attempt: TestAttempt) -> str:
    """Append an attempt to the log.

    Returns:
        The generated attempt_id, also set on the attempt
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO test_attempts (user_id, subject, type, lesson_id, created_at, data)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                attempt.user_id,
                attempt.subject,
                attempt.type,
                attempt.lesson_id,
                attempt.timestamp,
                json.dumps(attempt.to_dict()),
            ),
        )
        attempt_id = str(cursor.lastrowid)

    attempt.attempt_id = attempt_id
    logger.debug(
        "attempts.inserted",
        attempt_id=attempt_id,
        user_id=attempt.user_id,
        type=attempt.type,
        score=attempt.score,
    )
    return attempt_id


def list_attempts(
    user_id: str | None = None,
    subject: str | None = None,
    type: str | None = None,
    limit: int | None = None,
) -> list[TestAttempt]:
    """Query the log by any combination of user, subject and type.

    Args:
        user_id: Only this user's attempts
        subject: Only this subject
        type: Only this test kind
        limit: Maximum number of attempts

    Returns:
        Matching attempts, newest first
    """
    clauses = []
    params: list = []
    if user_id is not None:
        clauses.append("user_id = ?")
        params.append(user_id)
    if subject is not None:
        clauses.append("subject = ?")
        params.append(subject)
    if type is not None:
        clauses.append("type = ?")
        params.append(type)

    query = "SELECT attempt_id, data FROM test_attempts"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY created_at DESC, attempt_id DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_attempt(row) for row in rows]


def _row_to_attempt(row) -> TestAttempt:
    """Convert database row to TestAttempt."""
    attempt = TestAttempt.from_dict(json.loads(row["data"]))
    attempt.attempt_id = str(row["attempt_id"])
    return attempt
