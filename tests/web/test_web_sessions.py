"""Tests for in-flight test sessions and the dashboard event stream."""

import json

import pytest

from learnpath.core.models import TestQuestion, UserProfile
from learnpath.core.session import PendingTest
from learnpath.db import users_repository
from learnpath.web.routes.dashboard import dashboard_events
from learnpath.web.sessions import TestSessionManager, get_test_sessions, reset_test_sessions


def _pending(user_id: str = "stu01") -> PendingTest:
    question = TestQuestion(question="Q", options=("a", "b", "c", "d"), correct_answer="a")
    return PendingTest(user_id=user_id, kind="regular", questions=[question])


def _parse(event: str) -> tuple[str, str]:
    name_line, data_line = event.strip().split("\n")
    return name_line.removeprefix("event: "), data_line.removeprefix("data: ")


class TestTestSessionManager:
    """Tests for TestSessionManager."""

    @pytest.mark.asyncio
    async def test_open_and_get(self):
        """An open test is found by user and id."""
        manager = TestSessionManager()
        pending = _pending()
        await manager.open(pending)

        assert await manager.get("stu01", pending.test_id) is pending
        assert await manager.get("stu01", "other") is None
        assert await manager.get("stu02", pending.test_id) is None

    @pytest.mark.asyncio
    async def test_one_open_test_per_user(self):
        """Starting a new test replaces the previous one."""
        manager = TestSessionManager()
        first, second = _pending(), _pending()
        await manager.open(first)
        await manager.open(second)

        assert await manager.get("stu01", first.test_id) is None
        assert await manager.get("stu01", second.test_id) is second
        assert await manager.count() == 1

    @pytest.mark.asyncio
    async def test_close(self):
        """Closing removes the test once."""
        manager = TestSessionManager()
        pending = _pending()
        await manager.open(pending)

        assert await manager.close("stu01", pending.test_id)
        assert not await manager.close("stu01", pending.test_id)
        assert await manager.count() == 0

    @pytest.mark.asyncio
    async def test_close_ignores_stale_id(self):
        """A stale id does not close the newer test."""
        manager = TestSessionManager()
        old, new = _pending(), _pending()
        await manager.open(old)
        await manager.open(new)

        assert not await manager.close("stu01", old.test_id)
        assert await manager.get("stu01", new.test_id) is new

    def test_global_manager(self):
        """get returns one instance until reset."""
        first = get_test_sessions()
        assert get_test_sessions() is first
        reset_test_sessions()
        assert get_test_sessions() is not first


class TestDashboardEvents:
    """Tests for the dashboard SSE generator."""

    @pytest.fixture
    def student(self, db):
        users_repository.insert_user(UserProfile(user_id="stu01", role="student"))

    @pytest.mark.asyncio
    async def test_initial_dashboard_then_changes(self, service, feed, student):
        """The dashboard is sent first and again after each change."""
        events = dashboard_events("stu01", service, feed, keepalive=5)

        name, data = _parse(await events.__anext__())
        assert name == "dashboard"
        assert json.loads(data)["total_tests"] == 0

        ctx = await service.context("stu01")
        pending = await service.start_test(ctx, "placement")
        await service.submit_test(ctx, pending, [q.correct_answer for q in pending.questions])

        name, data = _parse(await events.__anext__())
        changed = json.loads(data)
        assert name == "dashboard"
        assert changed["changed"] == "profile"
        assert changed["level"] == "advanced"

        name, data = _parse(await events.__anext__())
        assert json.loads(data)["changed"] == "attempts"
        assert json.loads(data)["total_tests"] == 1

        await events.aclose()
        assert await feed.subscription_count("stu01") == 0

    @pytest.mark.asyncio
    async def test_keepalive_when_idle(self, service, feed, student):
        """Idle streams send keepalives."""
        events = dashboard_events("stu01", service, feed, keepalive=0.01)

        await events.__anext__()
        name, data = _parse(await events.__anext__())

        assert name == "keepalive"
        assert data == "ping"
        await events.aclose()

    @pytest.mark.asyncio
    async def test_close_when_feed_ends(self, service, feed, student):
        """Unsubscribed sources end the stream with a close event."""
        events = dashboard_events("stu01", service, feed, keepalive=5)
        await events.__anext__()

        for channel in ("profile", "attempts"):
            for sub in list(feed._subscriptions.get(("stu01", channel), [])):
                await feed.unsubscribe(sub)

        name, _ = _parse(await events.__anext__())
        assert name == "close"
        await events.aclose()
