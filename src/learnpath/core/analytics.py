"""Analytics aggregator and dashboard read models.

Mock results overwrite the band scores (last attempt wins) and replace the
strength/weakness labels on every recompute. Promotion history is
append-only. The read models below are built from store snapshots and never
write.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from learnpath.core.models import BANDS, Analytics, LearningPathProgress, PromotionRecord, TestAttempt, UserProfile
from learnpath.utils.scoring import round_half_up

logger = structlog.get_logger(__name__)

BAND_LABELS: dict[str, str] = {
    "easy": "Python Basics",
    "medium": "Intermediate Python",
    "advanced": "Advanced Python",
}

STRENGTH_MIN_SCORE = 4
WEAKNESS_MAX_SCORE = 2

UNASSESSED = "unassessed"
NOT_STARTED = "Not Started"


# =============================================================================
# MOCK RESULTS
# =============================================================================


def derive_strengths_weaknesses(scores: dict[str, int]) -> tuple[list[str], list[str]]:
    """Label each band as strength (>=4), weakness (<=2) or neither (3)."""
    strengths: list[str] = []
    weaknesses: list[str] = []
    for band in BANDS:
        score = scores.get(band, 0)
        if score >= STRENGTH_MIN_SCORE:
            strengths.append(BAND_LABELS[band])
        elif score <= WEAKNESS_MAX_SCORE:
            weaknesses.append(BAND_LABELS[band])
    return strengths, weaknesses


def initialize_analytics(user_id: str, subject: str = "Python") -> Analytics:
    """Empty record: zero scores, no labels, no history."""
    return Analytics(user_id=user_id, subject=subject)


def record_mock_result(
    existing: Analytics | None,
    user_id: str,
    easy_score: int,
    medium_score: int,
    advanced_score: int,
    promoted_to: str,
    previous_level: str | None,
    subject: str = "Python",
) -> Analytics:
    """Fold one mock test into the user's analytics.

    Creates the record if the user has none. Mutates and returns it.
    """
    analytics = existing or initialize_analytics(user_id, subject)
    now = datetime.now(timezone.utc).isoformat()

    analytics.easy_score = easy_score
    analytics.medium_score = medium_score
    analytics.advanced_score = advanced_score

    if promoted_to != previous_level:
        analytics.promotion_history.append(
            PromotionRecord(from_level=previous_level, to_level=promoted_to, timestamp=now)
        )

    analytics.strengths, analytics.weaknesses = derive_strengths_weaknesses(analytics.band_scores())
    analytics.updated_at = now

    logger.info(
        "analytics_updated",
        user_id=user_id,
        promoted=promoted_to != previous_level,
        strengths=analytics.strengths,
        weaknesses=analytics.weaknesses,
    )
    return analytics


# =============================================================================
# AGGREGATES
# =============================================================================


def level_distribution(levels: Iterable[str | None]) -> dict[str, int]:
    """Histogram of current levels; missing levels count as unassessed."""
    distribution: dict[str, int] = {}
    for level in levels:
        key = level or UNASSESSED
        distribution[key] = distribution.get(key, 0) + 1
    return distribution


def mean_score(attempts: Sequence[TestAttempt]) -> float | None:
    """Plain arithmetic mean of attempt scores, None without attempts."""
    if not attempts:
        return None
    return sum(a.score for a in attempts) / len(attempts)


# =============================================================================
# READ MODELS
# =============================================================================


@dataclass
class StudentDashboard:
    """Summary shown to a student about their own tests."""

    level: str | None
    diagnostic_completed: bool
    total_tests: int
    last_test_score: int | None
    average_score: int | None
    weak_areas: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "diagnostic_completed": self.diagnostic_completed,
            "total_tests": self.total_tests,
            "last_test_score": self.last_test_score,
            "average_score": self.average_score,
            "weak_areas": list(self.weak_areas),
        }


@dataclass
class StudentOverview:
    """One row of the teacher's student table."""

    user_id: str
    full_name: str
    email: str
    current_level: str
    progress_percentage: int
    lessons_completed: int
    total_lessons: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "current_level": self.current_level,
            "progress_percentage": self.progress_percentage,
            "lessons_completed": self.lessons_completed,
            "total_lessons": self.total_lessons,
        }


@dataclass
class ClassSummary:
    level_distribution: dict[str, int]
    mean_score: float | None
    student_count: int
    attempt_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "level_distribution": dict(self.level_distribution),
            "mean_score": self.mean_score,
            "student_count": self.student_count,
            "attempt_count": self.attempt_count,
        }


def student_dashboard(profile: UserProfile, attempts: Sequence[TestAttempt]) -> StudentDashboard:
    """Build the student dashboard. attempts must be newest first."""
    average = mean_score(attempts)
    return StudentDashboard(
        level=profile.level,
        diagnostic_completed=profile.diagnostic_completed,
        total_tests=len(attempts),
        last_test_score=attempts[0].score if attempts else None,
        average_score=round_half_up(average) if average is not None else None,
        weak_areas=list(profile.weak_areas),
    )


def student_overview(profile: UserProfile, progress: LearningPathProgress | None) -> StudentOverview:
    if progress is None:
        return StudentOverview(
            user_id=profile.user_id,
            full_name=profile.full_name,
            email=profile.email,
            current_level=NOT_STARTED,
            progress_percentage=0,
            lessons_completed=0,
            total_lessons=0,
        )

    return StudentOverview(
        user_id=profile.user_id,
        full_name=profile.full_name,
        email=profile.email,
        current_level=progress.current_level or NOT_STARTED,
        progress_percentage=progress.progress_percentage,
        lessons_completed=progress.completed_count,
        total_lessons=len(progress.lessons),
    )


def class_summary(
    students: Sequence[UserProfile],
    progress_by_user: dict[str, LearningPathProgress],
    attempts: Sequence[TestAttempt],
) -> ClassSummary:
    """Aggregate view across all students."""
    levels = []
    for student in students:
        progress = progress_by_user.get(student.user_id)
        levels.append(progress.current_level if progress else None)

    return ClassSummary(
        level_distribution=level_distribution(levels),
        mean_score=mean_score(attempts),
        student_count=len(students),
        attempt_count=len(attempts),
    )
