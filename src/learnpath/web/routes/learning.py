"""Learning path endpoints."""

from fastapi import APIRouter, Depends, status

from learnpath.core.errors import NotFoundError
from learnpath.core.models import UserProfile
from learnpath.core.session import LearningService, SessionContext
from learnpath.web.dependencies import get_caller, get_service, require_owner, require_owner_or_teacher
from learnpath.web.schemas import LearningPathResponse, LessonResponse, PathGenerateRequest

router = APIRouter(prefix="/api/learning", tags=["learning"])


def _path_response(service: LearningService, ctx: SessionContext) -> LearningPathResponse:
    progress = ctx.progress
    return LearningPathResponse(
        user_id=progress.user_id,
        current_level=progress.current_level,
        subject=progress.subject,
        lessons=[LessonResponse(**lesson) for lesson in service.lesson_states(ctx)],
        progress_percentage=progress.progress_percentage,
        updated_at=progress.updated_at,
    )


@router.get("/{user_id}/path", response_model=LearningPathResponse)
async def get_path(
    user_id: str,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> LearningPathResponse:
    """Active path with read-time unlock state per lesson."""
    require_owner_or_teacher(user_id, caller)

    ctx = await service.context(user_id)
    if ctx.progress is None:
        raise NotFoundError(f"No learning path for user {user_id}")
    return _path_response(service, ctx)


@router.post("/{user_id}/path", response_model=LearningPathResponse, status_code=status.HTTP_201_CREATED)
async def generate_path(
    user_id: str,
    request: PathGenerateRequest,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> LearningPathResponse:
    """Generate a path at the learner's level; replace must be set to overwrite one."""
    require_owner(user_id, caller)

    ctx = await service.context(user_id)
    await service.generate_path(ctx, replace=request.replace)
    return _path_response(service, ctx)


@router.post("/{user_id}/lessons/{lesson_id}/view", response_model=LessonResponse)
async def view_lesson(
    user_id: str,
    lesson_id: str,
    caller: UserProfile = Depends(get_caller),
    service: LearningService = Depends(get_service),
) -> LessonResponse:
    """Open a lesson's content; locked lessons are refused."""
    require_owner(user_id, caller)

    ctx = await service.context(user_id)
    lesson = await service.view_lesson(ctx, lesson_id)
    return LessonResponse(**lesson.to_dict(), unlocked=True)
