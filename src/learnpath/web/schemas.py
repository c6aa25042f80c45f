"""Pydantic schemas for the Web API.

Serialization models for users, tests, learning paths and dashboards.
Responses are built from the domain objects' to_dict() output.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    ai_configured: bool = False
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# =============================================================================
# USER SCHEMAS
# =============================================================================


class UserCreate(BaseModel):
    """Request body for registering a user."""

    user_id: str = Field(..., min_length=1, max_length=64)
    role: Literal["student", "teacher"]
    full_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(default="", max_length=200)


class UserResponse(BaseModel):
    user_id: str
    role: str
    full_name: str
    email: str
    level: str | None = None
    diagnostic_completed: bool = False
    weak_areas: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


# =============================================================================
# TEST SCHEMAS
# =============================================================================


class TestStartRequest(BaseModel):
    """Request body for generating a test."""

    kind: Literal["placement", "mock", "lesson"]
    lesson_id: str | None = None


class QuestionResponse(BaseModel):
    """A question as shown to the learner (no answer key)."""

    question: str
    options: list[str]
    level: str | None = None


class TestStartResponse(BaseModel):
    test_id: str
    kind: str
    level: str | None = None
    lesson_id: str | None = None
    questions: list[QuestionResponse]


class TestSubmitRequest(BaseModel):
    """Answers in question order, one option string per question."""

    test_id: str
    answers: list[str | None]


class AnsweredQuestionResponse(BaseModel):
    question: str
    options: list[str]
    correct_answer: str
    student_answer: str | None = None
    is_correct: bool
    level: str | None = None


class TestResultResponse(BaseModel):
    """Result of a submitted test."""

    type: str
    score: int
    correct_count: int
    total_questions: int
    level: str | None = None
    questions: list[AnsweredQuestionResponse]
    weak_areas: list[str] | None = None
    reasoning: str | None = None
    promoted_level: str | None = None
    previous_level: str | None = None
    promoted: bool | None = None
    band_scores: dict[str, int] | None = None
    lesson_id: str | None = None
    test_passed: bool | None = None
    completed: bool | None = None
    progress_percentage: int | None = None


class AttemptResponse(BaseModel):
    attempt_id: str | None = None
    user_id: str
    subject: str
    level: str | None = None
    type: str
    lesson_id: str | None = None
    questions: list[AnsweredQuestionResponse]
    score: int
    correct_count: int
    total_questions: int
    timestamp: str
    band_scores: dict[str, int] | None = None
    promoted_to: str | None = None


class AttemptListResponse(BaseModel):
    attempts: list[AttemptResponse]
    count: int


# =============================================================================
# LEARNING PATH SCHEMAS
# =============================================================================


class LessonResponse(BaseModel):
    lesson_id: str
    title: str
    description: str
    content: str | None = None
    completed: bool
    content_viewed: bool
    test_passed: bool
    test_score: int | None = None
    level: str | None = None
    difficulty: str | None = None
    topics: list[str] = Field(default_factory=list)
    estimated_duration: str | None = None
    unlocked: bool | None = None


class LearningPathResponse(BaseModel):
    user_id: str
    current_level: str | None = None
    subject: str
    lessons: list[LessonResponse]
    progress_percentage: int
    updated_at: str


class PathGenerateRequest(BaseModel):
    """Request body for generating a learning path."""

    replace: bool = False


# =============================================================================
# DASHBOARD SCHEMAS
# =============================================================================


class DashboardResponse(BaseModel):
    level: str | None = None
    diagnostic_completed: bool
    total_tests: int
    last_test_score: int | None = None
    average_score: int | None = None
    weak_areas: list[str] = Field(default_factory=list)


class PromotionRecordResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_level: str | None = Field(default=None, alias="from")
    to_level: str = Field(..., alias="to")
    timestamp: str


class AnalyticsResponse(BaseModel):
    user_id: str
    subject: str
    easy_score: int
    medium_score: int
    advanced_score: int
    strengths: list[str]
    weaknesses: list[str]
    promotion_history: list[PromotionRecordResponse]
    updated_at: str


class StudentOverviewResponse(BaseModel):
    """One row of the teacher's student table."""

    user_id: str
    full_name: str
    email: str
    current_level: str
    progress_percentage: int
    lessons_completed: int
    total_lessons: int


class StudentOverviewListResponse(BaseModel):
    students: list[StudentOverviewResponse]
    count: int


class ClassSummaryResponse(BaseModel):
    level_distribution: dict[str, int]
    mean_score: float | None = None
    student_count: int
    attempt_count: int


class StudentDetailsResponse(BaseModel):
    profile: UserResponse
    progress: LearningPathResponse | None = None
    analytics: AnalyticsResponse | None = None
    attempts: list[AttemptResponse]
