"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for users, progress, analytics and test attempts
"""

from learnpath.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
