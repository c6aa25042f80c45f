"""SQLite database connection and schema management.

The store is document shaped: each table keeps the entity as a JSON
document plus the columns it is queried by.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from learnpath.core.errors import PersistenceError

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/learnpath.db")

# Current database file (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/learnpath.db
    """
    global _db_path
    _db_path = Path(db_path) if db_path else DEFAULT_DB_PATH

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Raises:
        PersistenceError: on any SQLite failure, after rollback.
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as e:
        raise PersistenceError(f"Cannot open database {db_path}: {e}") from e

    conn.row_factory = sqlite3.Row

    try:
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("database.error", path=str(db_path), error=str(e))
        raise PersistenceError(str(e)) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema. Uses IF NOT EXISTS for idempotency."""
    conn.executescript(
        """
        -- One profile document per user
        CREATE TABLE IF NOT EXISTS users (
            user_id TEXT PRIMARY KEY,
            role TEXT NOT NULL CHECK(role IN ('student', 'teacher')),
            data TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- One active learning path per user and subject
        CREATE TABLE IF NOT EXISTS student_progress (
            user_id TEXT NOT NULL,
            subject TEXT NOT NULL,
            data TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (user_id, subject)
        );

        -- One analytics document per user
        CREATE TABLE IF NOT EXISTS analytics (
            user_id TEXT PRIMARY KEY,
            data TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Append-only attempt log
        CREATE TABLE IF NOT EXISTS test_attempts (
            attempt_id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            subject TEXT NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('diagnostic', 'regular', 'mock', 'lesson')),
            lesson_id TEXT,
            created_at TEXT NOT NULL,
            data TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);
        CREATE INDEX IF NOT EXISTS idx_attempts_user ON test_attempts(user_id, subject, type);
        CREATE INDEX IF NOT EXISTS idx_attempts_created ON test_attempts(created_at);
        """
    )
