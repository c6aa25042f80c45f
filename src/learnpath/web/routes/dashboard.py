"""Student dashboard endpoints, including the live SSE stream."""

import asyncio
import json
from typing import Any, AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from learnpath.core.live_updates import ChangeFeed, get_change_feed, merge_subscriptions
from learnpath.core.models import UserProfile
from learnpath.core.session import LearningService
from learnpath.db import users_repository
from learnpath.web.dependencies import get_caller, get_service, require_owner_or_teacher
from learnpath.web.schemas import DashboardResponse

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

# Keepalive interval for idle streams
KEEPALIVE_SECONDS = 30.0


def _sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def dashboard_events(
    user_id: str,
    service: LearningService,
    feed: ChangeFeed,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncGenerator[str, None]:
    """Generate SSE events: the dashboard now, then again on every change.

    Listens to the profile and attempts channels. Subscriptions are
    registered before the first read so no change is missed.
    """
    profile_sub = await feed.subscribe(user_id, "profile")
    attempts_sub = await feed.subscribe(user_id, "attempts")
    stream = merge_subscriptions(profile_sub, attempts_sub)

    try:
        dashboard = await service.student_dashboard(user_id)
        yield _sse("dashboard", dashboard.to_dict())

        while True:
            try:
                snapshot = await stream.get(timeout=keepalive)
            except asyncio.TimeoutError:
                yield "event: keepalive\ndata: ping\n\n"
                continue

            if snapshot is None:
                yield "event: close\ndata: Stream ended\n\n"
                return

            dashboard = await service.student_dashboard(user_id)
            yield _sse("dashboard", {**dashboard.to_dict(), "changed": snapshot.channel})
    finally:
        await stream.aclose(feed)


@router.get("/{user_id}", response_model=DashboardResponse)
async def get_dashboard(
    user_id: str,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> DashboardResponse:
    """Level, diagnostic status and test statistics."""
    require_owner_or_teacher(user_id, caller)
    dashboard = await service.student_dashboard(user_id)
    return DashboardResponse(**dashboard.to_dict())


@router.get("/{user_id}/stream")
async def stream_dashboard(
    user_id: str,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> StreamingResponse:
    """Stream dashboard updates using Server-Sent Events.

    Events:
    - dashboard: current dashboard as JSON ("changed" names the channel)
    - keepalive: sent when idle to keep the connection alive
    - close: the stream has ended
    """
    require_owner_or_teacher(user_id, caller)
    await asyncio.to_thread(users_repository.require_user, user_id)

    return StreamingResponse(
        dashboard_events(user_id, service, get_change_feed()),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
