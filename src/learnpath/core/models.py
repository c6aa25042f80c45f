"""Domain entities for profiles, tests, learning paths and analytics.

All entities serialize to plain dicts (snake_case keys) for the document
store; from_dict tolerates missing optional keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from learnpath.utils.scoring import percentage

# =============================================================================
# TYPES
# =============================================================================

Role = Literal["student", "teacher"]
Band = Literal["easy", "medium", "advanced"]
PlacementLevel = Literal["beginner", "intermediate", "advanced"]
TestKind = Literal["diagnostic", "regular", "mock", "lesson"]

BANDS: tuple[Band, ...] = ("easy", "medium", "advanced")
PLACEMENT_LEVELS: tuple[PlacementLevel, ...] = ("beginner", "intermediate", "advanced")
ROLES: tuple[Role, ...] = ("student", "teacher")
TEST_KINDS: tuple[TestKind, ...] = ("diagnostic", "regular", "mock", "lesson")

# Every level a profile or path may carry
LEVELS: tuple[str, ...] = ("easy", "medium", "advanced", "beginner", "intermediate")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# USER PROFILE
# =============================================================================


@dataclass
class UserProfile:
    """Registered user. Level and weak areas are set by the leveling flow."""

    user_id: str
    role: Role
    full_name: str = ""
    email: str = ""
    level: str | None = None
    diagnostic_completed: bool = False
    weak_areas: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        now = _now()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "user_id": self.user_id,
            "role": self.role,
            "full_name": self.full_name,
            "email": self.email,
            "level": self.level,
            "diagnostic_completed": self.diagnostic_completed,
            "weak_areas": list(self.weak_areas),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserProfile:
        return cls(
            user_id=data["user_id"],
            role=data.get("role", "student"),
            full_name=data.get("full_name", ""),
            email=data.get("email", ""),
            level=data.get("level"),
            diagnostic_completed=data.get("diagnostic_completed", False),
            weak_areas=list(data.get("weak_areas", [])),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


# =============================================================================
# QUESTIONS AND ATTEMPTS
# =============================================================================


@dataclass(frozen=True)
class TestQuestion:
    """A generated multiple-choice question. Immutable once generated."""

    __test__ = False

    question: str
    options: tuple[str, ...]
    correct_answer: str
    level: Band | None = None

    def answer(self, student_answer: str | None) -> AnsweredQuestion:
        """Attach a student answer and its correctness."""
        return AnsweredQuestion(
            question=self.question,
            options=self.options,
            correct_answer=self.correct_answer,
            student_answer=student_answer,
            is_correct=student_answer is not None and student_answer == self.correct_answer,
            level=self.level,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
        }
        if self.level is not None:
            result["level"] = self.level
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestQuestion:
        return cls(
            question=data["question"],
            options=tuple(data["options"]),
            correct_answer=data["correct_answer"],
            level=data.get("level"),
        )


@dataclass(frozen=True)
class AnsweredQuestion:
    """A question together with the student's answer."""

    question: str
    options: tuple[str, ...]
    correct_answer: str
    student_answer: str | None
    is_correct: bool
    level: Band | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "student_answer": self.student_answer,
            "is_correct": self.is_correct,
        }
        if self.level is not None:
            result["level"] = self.level
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnsweredQuestion:
        return cls(
            question=data["question"],
            options=tuple(data["options"]),
            correct_answer=data["correct_answer"],
            student_answer=data.get("student_answer"),
            is_correct=bool(data.get("is_correct", False)),
            level=data.get("level"),
        )


@dataclass
class TestAttempt:
    """One submitted test. Append-only: never mutated after it is saved."""

    __test__ = False

    user_id: str
    subject: str
    level: str | None
    type: TestKind
    questions: list[AnsweredQuestion]
    score: int
    correct_count: int
    total_questions: int
    timestamp: str = ""
    lesson_id: str | None = None
    band_scores: dict[str, int] | None = None
    promoted_to: str | None = None
    attempt_id: str | None = None

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = _now()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "user_id": self.user_id,
            "subject": self.subject,
            "level": self.level,
            "type": self.type,
            "lesson_id": self.lesson_id,
            "questions": [q.to_dict() for q in self.questions],
            "score": self.score,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "timestamp": self.timestamp,
        }
        if self.band_scores is not None:
            result["band_scores"] = dict(self.band_scores)
        if self.promoted_to is not None:
            result["promoted_to"] = self.promoted_to
        if self.attempt_id is not None:
            result["attempt_id"] = self.attempt_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestAttempt:
        return cls(
            user_id=data["user_id"],
            subject=data["subject"],
            level=data.get("level"),
            type=data["type"],
            questions=[AnsweredQuestion.from_dict(q) for q in data.get("questions", [])],
            score=int(data.get("score", 0)),
            correct_count=int(data.get("correct_count", 0)),
            total_questions=int(data.get("total_questions", 0)),
            timestamp=data.get("timestamp", ""),
            lesson_id=data.get("lesson_id"),
            band_scores=data.get("band_scores"),
            promoted_to=data.get("promoted_to"),
            attempt_id=data.get("attempt_id"),
        )


# =============================================================================
# LEARNING PATH
# =============================================================================


@dataclass
class Lesson:
    """A lesson in a learning path. Flags change as the user progresses."""

    lesson_id: str
    title: str
    description: str
    content: str
    completed: bool = False
    content_viewed: bool = False
    test_passed: bool = False
    test_score: int | None = None
    level: str | None = None
    difficulty: str | None = None
    topics: list[str] = field(default_factory=list)
    estimated_duration: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "lesson_id": self.lesson_id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "completed": self.completed,
            "content_viewed": self.content_viewed,
            "test_passed": self.test_passed,
            "test_score": self.test_score,
            "level": self.level,
            "difficulty": self.difficulty,
            "topics": list(self.topics),
            "estimated_duration": self.estimated_duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lesson:
        return cls(
            lesson_id=data["lesson_id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            content=data.get("content", ""),
            completed=data.get("completed", False),
            content_viewed=data.get("content_viewed", False),
            test_passed=data.get("test_passed", False),
            test_score=data.get("test_score"),
            level=data.get("level"),
            difficulty=data.get("difficulty"),
            topics=list(data.get("topics", [])),
            estimated_duration=data.get("estimated_duration"),
        )


@dataclass
class LearningPathProgress:
    """A user's active lesson path for one subject.

    progress_percentage is always derived from lesson completion.
    """

    user_id: str
    current_level: str | None
    subject: str
    lessons: list[Lesson] = field(default_factory=list)
    updated_at: str = ""

    def __post_init__(self):
        if not self.updated_at:
            self.updated_at = _now()

    @property
    def completed_count(self) -> int:
        return sum(1 for lesson in self.lessons if lesson.completed)

    @property
    def progress_percentage(self) -> int:
        return percentage(self.completed_count, len(self.lessons))

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "current_level": self.current_level,
            "subject": self.subject,
            "lessons": [lesson.to_dict() for lesson in self.lessons],
            "progress_percentage": self.progress_percentage,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LearningPathProgress:
        # progress_percentage in the stored document is ignored: it is derived
        return cls(
            user_id=data["user_id"],
            current_level=data.get("current_level"),
            subject=data["subject"],
            lessons=[Lesson.from_dict(item) for item in data.get("lessons", [])],
            updated_at=data.get("updated_at", ""),
        )


# =============================================================================
# ANALYTICS
# =============================================================================


@dataclass(frozen=True)
class PromotionRecord:
    """One step up the promotion ladder."""

    from_level: str | None
    to_level: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_level, "to": self.to_level, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PromotionRecord:
        return cls(
            from_level=data.get("from"),
            to_level=data["to"],
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class Analytics:
    """Longitudinal mock-test signal for one user."""

    user_id: str
    subject: str = "Python"
    easy_score: int = 0
    medium_score: int = 0
    advanced_score: int = 0
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    promotion_history: list[PromotionRecord] = field(default_factory=list)
    updated_at: str = ""

    def __post_init__(self):
        if not self.updated_at:
            self.updated_at = _now()

    def band_scores(self) -> dict[str, int]:
        return {
            "easy": self.easy_score,
            "medium": self.medium_score,
            "advanced": self.advanced_score,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "subject": self.subject,
            "easy_score": self.easy_score,
            "medium_score": self.medium_score,
            "advanced_score": self.advanced_score,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "promotion_history": [p.to_dict() for p in self.promotion_history],
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Analytics:
        return cls(
            user_id=data["user_id"],
            subject=data.get("subject", "Python"),
            easy_score=int(data.get("easy_score", 0)),
            medium_score=int(data.get("medium_score", 0)),
            advanced_score=int(data.get("advanced_score", 0)),
            strengths=list(data.get("strengths", [])),
            weaknesses=list(data.get("weaknesses", [])),
            promotion_history=[
                PromotionRecord.from_dict(p) for p in data.get("promotion_history", [])
            ],
            updated_at=data.get("updated_at", ""),
        )
