"""Push-based change feed for live dashboards.

Writers publish a snapshot after every successful store write; readers hold
one Subscription per (user, channel) and receive snapshots through an
asyncio.Queue. Several subscriptions can be merged into one stream.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import structlog

logger = structlog.get_logger(__name__)

Channel = Literal["profile", "attempts", "progress", "analytics"]
CHANNELS: tuple[Channel, ...] = ("profile", "attempts", "progress", "analytics")


@dataclass
class Snapshot:
    """One published change."""

    user_id: str
    channel: Channel
    data: Any
    published_at: str = ""

    def __post_init__(self):
        if not self.published_at:
            self.published_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "channel": self.channel,
            "data": self.data,
            "published_at": self.published_at,
        }


@dataclass(eq=False)
class Subscription:
    """Listener for one user's channel. None on the queue marks the end."""

    user_id: str
    channel: Channel
    queue: asyncio.Queue[Snapshot | None] = field(default_factory=lambda: asyncio.Queue())
    closed: bool = False

    async def get(self, timeout: float | None = None) -> Snapshot | None:
        """Next snapshot, or None once closed.

        Raises:
            asyncio.TimeoutError: if timeout elapses first.
        """
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Snapshot:
        snapshot = await self.queue.get()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot


class ChangeFeed:
    """Registry of subscriptions keyed by user and channel."""

    def __init__(self):
        self._subscriptions: dict[tuple[str, str], list[Subscription]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, user_id: str, channel: Channel) -> Subscription:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")

        subscription = Subscription(user_id=user_id, channel=channel)
        async with self._lock:
            self._subscriptions.setdefault((user_id, channel), []).append(subscription)

        logger.debug("subscription_added", user_id=user_id, channel=channel)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription and end its stream.

        Returns:
            True if it was registered, False otherwise
        """
        key = (subscription.user_id, subscription.channel)
        async with self._lock:
            listeners = self._subscriptions.get(key, [])
            if subscription not in listeners:
                return False
            listeners.remove(subscription)
            if not listeners:
                del self._subscriptions[key]

        subscription.closed = True
        await subscription.queue.put(None)
        logger.debug("subscription_removed", user_id=subscription.user_id, channel=subscription.channel)
        return True

    async def publish(self, user_id: str, channel: Channel, data: Any) -> int:
        """Deliver a snapshot to every listener of (user_id, channel).

        Returns:
            Number of subscriptions that received it
        """
        async with self._lock:
            listeners = list(self._subscriptions.get((user_id, channel), []))

        snapshot = Snapshot(user_id=user_id, channel=channel, data=data)
        for subscription in listeners:
            await subscription.queue.put(snapshot)

        if listeners:
            logger.debug("snapshot_published", user_id=user_id, channel=channel, listeners=len(listeners))
        return len(listeners)

    async def subscription_count(self, user_id: str | None = None) -> int:
        async with self._lock:
            return sum(
                len(listeners)
                for (owner, _), listeners in self._subscriptions.items()
                if user_id is None or owner == user_id
            )


class MergedStream:
    """Single stream over several subscriptions, in arrival order.

    Ends once every source subscription has been closed.
    """

    def __init__(self, subscriptions: list[Subscription]):
        self.subscriptions = subscriptions
        self._queue: asyncio.Queue[Snapshot | None] = asyncio.Queue()
        self._open = len(subscriptions)
        self._tasks = [asyncio.create_task(self._pump(s)) for s in subscriptions]

    async def _pump(self, subscription: Subscription) -> None:
        while True:
            snapshot = await subscription.queue.get()
            await self._queue.put(snapshot)
            if snapshot is None:
                return

    async def get(self, timeout: float | None = None) -> Snapshot | None:
        """Next snapshot from any source, or None once all are closed.

        Raises:
            asyncio.TimeoutError: if timeout elapses first.
        """
        while self._open > 0:
            if timeout is None:
                snapshot = await self._queue.get()
            else:
                snapshot = await asyncio.wait_for(self._queue.get(), timeout=timeout)
            if snapshot is not None:
                return snapshot
            self._open -= 1
        return None

    def __aiter__(self):
        return self

    async def __anext__(self) -> Snapshot:
        snapshot = await self.get()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot

    async def aclose(self, feed: ChangeFeed | None = None) -> None:
        """Stop forwarding and, given the feed, unregister every source."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if feed is not None:
            for subscription in self.subscriptions:
                await feed.unsubscribe(subscription)


def merge_subscriptions(*subscriptions: Subscription) -> MergedStream:
    """Compose independent subscriptions into one stream.

    Must be called from a running event loop.
    """
    return MergedStream(list(subscriptions))


# Global change feed instance
_change_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    """Get the global change feed instance."""
    global _change_feed
    if _change_feed is None:
        _change_feed = ChangeFeed()
    return _change_feed


def reset_change_feed() -> None:
    """Reset the change feed (for testing)."""
    global _change_feed
    _change_feed = None
