"""Read-only teacher views over all students."""

from fastapi import APIRouter, Depends, HTTPException, status

from learnpath.core.models import UserProfile
from learnpath.core.session import LearningService
from learnpath.web.dependencies import get_service, require_teacher
from learnpath.web.schemas import (
    ClassSummaryResponse,
    StudentDetailsResponse,
    StudentOverviewListResponse,
    StudentOverviewResponse,
)

router = APIRouter(prefix="/api/teacher", tags=["teacher"])


@router.get("/students", response_model=StudentOverviewListResponse)
async def list_students(
    teacher: UserProfile = Depends(require_teacher),
    service: LearningService = Depends(get_service),
) -> StudentOverviewListResponse:
    """Every student with path progress ("Not Started" without a path)."""
    rows = await service.student_overviews()
    students = [StudentOverviewResponse(**row.to_dict()) for row in rows]
    return StudentOverviewListResponse(students=students, count=len(students))


@router.get("/summary", response_model=ClassSummaryResponse)
async def class_summary(
    teacher: UserProfile = Depends(require_teacher),
    service: LearningService = Depends(get_service),
) -> ClassSummaryResponse:
    """Level distribution and mean score across all students."""
    summary = await service.class_summary()
    return ClassSummaryResponse(**summary.to_dict())


@router.get("/students/{user_id}", response_model=StudentDetailsResponse)
async def student_details(
    user_id: str,
    teacher: UserProfile = Depends(require_teacher),
    service: LearningService = Depends(get_service),
) -> StudentDetailsResponse:
    """Profile, path, analytics and attempts of one student."""
    details = await service.student_details(user_id)
    if details["profile"]["role"] != "student":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{user_id}' not found",
        )
    return StudentDetailsResponse.model_validate(details)
