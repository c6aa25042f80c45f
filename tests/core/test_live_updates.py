"""Tests for the change feed and merged subscriptions."""

import asyncio

import pytest

from learnpath.core.live_updates import ChangeFeed, get_change_feed, merge_subscriptions, reset_change_feed


class TestChangeFeed:
    """Tests for subscribe/publish/unsubscribe."""

    @pytest.mark.asyncio
    async def test_publish_reaches_subscriber(self, feed):
        """A published snapshot arrives on the matching subscription."""
        sub = await feed.subscribe("stu01", "profile")
        delivered = await feed.publish("stu01", "profile", {"level": "easy"})

        snapshot = await sub.get(timeout=1)
        assert delivered == 1
        assert snapshot.data == {"level": "easy"}
        assert snapshot.channel == "profile"

    @pytest.mark.asyncio
    async def test_other_users_and_channels_isolated(self, feed):
        """Snapshots only reach their own user and channel."""
        sub = await feed.subscribe("stu01", "profile")

        assert await feed.publish("stu02", "profile", {}) == 0
        assert await feed.publish("stu01", "attempts", {}) == 0
        assert sub.queue.empty()

    @pytest.mark.asyncio
    async def test_independent_subscriptions(self, feed):
        """Two listeners on one channel both receive the snapshot."""
        first = await feed.subscribe("stu01", "attempts")
        second = await feed.subscribe("stu01", "attempts")

        await feed.publish("stu01", "attempts", {"score": 80})

        assert (await first.get(timeout=1)).data == {"score": 80}
        assert (await second.get(timeout=1)).data == {"score": 80}

    @pytest.mark.asyncio
    async def test_unsubscribe_ends_iteration(self, feed):
        """Unsubscribing closes the stream."""
        sub = await feed.subscribe("stu01", "profile")
        await feed.publish("stu01", "profile", {"n": 1})
        assert await feed.unsubscribe(sub)

        received = [snapshot.data async for snapshot in sub]
        assert received == [{"n": 1}]
        assert sub.closed
        assert await feed.subscription_count("stu01") == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_twice(self, feed):
        """Second unsubscribe reports nothing removed."""
        sub = await feed.subscribe("stu01", "profile")
        assert await feed.unsubscribe(sub)
        assert not await feed.unsubscribe(sub)

    @pytest.mark.asyncio
    async def test_unknown_channel(self, feed):
        """Only the known channels can be subscribed."""
        with pytest.raises(ValueError):
            await feed.subscribe("stu01", "gossip")


class TestMergedStream:
    """Tests for composing subscriptions."""

    @pytest.mark.asyncio
    async def test_merge_profile_and_attempts(self, feed):
        """One stream yields changes from both channels."""
        profile = await feed.subscribe("stu01", "profile")
        attempts = await feed.subscribe("stu01", "attempts")
        stream = merge_subscriptions(profile, attempts)

        await feed.publish("stu01", "profile", {"level": "medium"})
        await feed.publish("stu01", "attempts", {"score": 90})

        channels = {(await stream.get(timeout=1)).channel, (await stream.get(timeout=1)).channel}
        assert channels == {"profile", "attempts"}

        await stream.aclose(feed)
        assert await feed.subscription_count() == 0

    @pytest.mark.asyncio
    async def test_merged_ends_when_all_closed(self, feed):
        """The merged stream ends after every source closes."""
        profile = await feed.subscribe("stu01", "profile")
        attempts = await feed.subscribe("stu01", "attempts")
        stream = merge_subscriptions(profile, attempts)

        await feed.unsubscribe(profile)
        await feed.unsubscribe(attempts)

        assert await stream.get(timeout=1) is None

    @pytest.mark.asyncio
    async def test_timeout_when_idle(self, feed):
        """An idle stream times out so callers can send keepalives."""
        stream = merge_subscriptions(await feed.subscribe("stu01", "profile"))

        with pytest.raises(asyncio.TimeoutError):
            await stream.get(timeout=0.01)

        await stream.aclose(feed)


class TestGlobalFeed:
    """Tests for the module-level instance."""

    def test_singleton_and_reset(self):
        """get returns one instance until reset."""
        first = get_change_feed()
        assert get_change_feed() is first

        reset_change_feed()
        assert get_change_feed() is not first
        assert isinstance(get_change_feed(), ChangeFeed)
