"""Test endpoints: generate, submit and list attempts."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status

from learnpath.core.models import UserProfile
from learnpath.core.session import LearningService
from learnpath.web.dependencies import get_caller, get_service, require_owner, require_owner_or_teacher
from learnpath.web.schemas import (
    AttemptListResponse,
    AttemptResponse,
    QuestionResponse,
    TestResultResponse,
    TestStartRequest,
    TestStartResponse,
    TestSubmitRequest,
)
from learnpath.web.sessions import get_test_sessions

router = APIRouter(prefix="/api/tests", tags=["tests"])


@router.post("/{user_id}/start", response_model=TestStartResponse, status_code=status.HTTP_201_CREATED)
async def start_test(
    user_id: str,
    request: TestStartRequest,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> TestStartResponse:
    """Generate a test and keep its answer key server-side.

    kind "placement" gives the diagnostic test until it is completed and a
    level-based test afterwards.
    """
    require_owner(user_id, caller)

    ctx = await service.context(user_id)
    pending = await service.start_test(ctx, request.kind, lesson_id=request.lesson_id)
    await get_test_sessions().open(pending)

    return TestStartResponse(
        test_id=pending.test_id,
        kind=pending.kind,
        level=pending.level,
        lesson_id=pending.lesson_id,
        questions=[QuestionResponse(**q) for q in pending.public_questions()],
    )


@router.post("/{user_id}/submit", response_model=TestResultResponse)
async def submit_test(
    user_id: str,
    request: TestSubmitRequest,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> TestResultResponse:
    """Grade the open test. Invalid answers leave the test open."""
    require_owner(user_id, caller)

    sessions = get_test_sessions()
    pending = await sessions.get(user_id, request.test_id)
    if pending is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Test '{request.test_id}' not found",
        )

    ctx = await service.context(user_id)
    outcome = await service.submit_test(ctx, pending, request.answers)
    await sessions.close(user_id, pending.test_id)

    return TestResultResponse(**outcome.to_dict())


@router.get("/{user_id}/attempts", response_model=AttemptListResponse)
async def list_attempts(
    user_id: str,
    type: Literal["diagnostic", "regular", "mock", "lesson"] | None = None,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> AttemptListResponse:
    """Attempt history, newest first."""
    require_owner_or_teacher(user_id, caller)

    attempts = await service.attempts(user_id, type)
    return AttemptListResponse(
        attempts=[AttemptResponse(**a.to_dict()) for a in attempts],
        count=len(attempts),
    )
