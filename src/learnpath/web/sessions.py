"""In-flight test sessions for the Web API.

A generated test stays server-side until it is submitted, so the answer key
never reaches the client. One open test per user; starting a new one
replaces the previous.
"""

from __future__ import annotations

import asyncio

import structlog

from learnpath.core.session import PendingTest

logger = structlog.get_logger(__name__)


class TestSessionManager:
    """Holds pending tests keyed by user."""

    __test__ = False

    def __init__(self):
        self._pending: dict[str, PendingTest] = {}
        self._lock = asyncio.Lock()

    async def open(self, pending: PendingTest) -> None:
        async with self._lock:
            replaced = self._pending.get(pending.user_id)
            self._pending[pending.user_id] = pending

        if replaced is not None:
            logger.info("test_replaced", user_id=pending.user_id, test_id=replaced.test_id)
        logger.debug("test_opened", user_id=pending.user_id, test_id=pending.test_id, kind=pending.kind)

    async def get(self, user_id: str, test_id: str) -> PendingTest | None:
        """The user's open test if its id matches."""
        async with self._lock:
            pending = self._pending.get(user_id)
        if pending is None or pending.test_id != test_id:
            return None
        return pending

    async def close(self, user_id: str, test_id: str) -> bool:
        async with self._lock:
            pending = self._pending.get(user_id)
            if pending is None or pending.test_id != test_id:
                return False
            del self._pending[user_id]

        logger.debug("test_closed", user_id=user_id, test_id=test_id)
        return True

    async def count(self) -> int:
        async with self._lock:
            return len(self._pending)


# Global test session manager instance
_test_sessions: TestSessionManager | None = None


def get_test_sessions() -> TestSessionManager:
    """Get the global test session manager."""
    global _test_sessions
    if _test_sessions is None:
        _test_sessions = TestSessionManager()
    return _test_sessions


def reset_test_sessions() -> None:
    """Reset the test session manager (for testing)."""
    global _test_sessions
    _test_sessions = None
