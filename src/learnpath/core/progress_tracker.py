"""Progress tracker: lesson completion, sequential unlocking and path lifecycle.

Rules:
- Lesson 0 is always accessible; lesson i > 0 is accessible iff lesson i-1
  is completed. Computed on read, never stored.
- A lesson test score >= pass threshold marks the lesson passed and
  completed; a lower score never reverts completion.
- progress_percentage is derived from completion (see LearningPathProgress).
- A path is finished when every lesson is completed; this only makes the
  learner eligible for a new mock test or path, it triggers nothing.

Functions mutate the LearningPathProgress they are given; callers persist it.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import structlog

from learnpath.core.errors import AlreadyExistsError, LessonLockedError, NotFoundError, ValidationError
from learnpath.core.models import LearningPathProgress, Lesson

logger = structlog.get_logger(__name__)

DEFAULT_PASS_THRESHOLD = 80


def _fresh_lessons(lessons: list[Lesson], level: str | None) -> list[Lesson]:
    """Copy lessons with every progress flag reset."""
    return [
        replace(
            lesson,
            completed=False,
            content_viewed=False,
            test_passed=False,
            test_score=None,
            level=level if level is not None else lesson.level,
        )
        for lesson in lessons
    ]


def _touch(progress: LearningPathProgress) -> None:
    progress.updated_at = datetime.now(timezone.utc).isoformat()


# =============================================================================
# PATH LIFECYCLE
# =============================================================================


def initialize_path(
    existing: LearningPathProgress | None,
    user_id: str,
    level: str,
    lessons: list[Lesson],
    subject: str,
) -> LearningPathProgress:
    """Create the first path for a user and subject.

    Raises:
        AlreadyExistsError: if a path for this subject is already active.
    """
    if existing is not None and existing.subject == subject:
        raise AlreadyExistsError(f"User {user_id} already has a {subject} learning path")

    progress = LearningPathProgress(
        user_id=user_id,
        current_level=level,
        subject=subject,
        lessons=_fresh_lessons(lessons, level),
    )
    logger.info("path_initialized", user_id=user_id, level=level, lessons=len(lessons))
    return progress


def replace_path(
    user_id: str,
    level: str,
    lessons: list[Lesson],
    subject: str,
) -> LearningPathProgress:
    """Wholesale replacement used on promotion or regeneration."""
    progress = LearningPathProgress(
        user_id=user_id,
        current_level=level,
        subject=subject,
        lessons=_fresh_lessons(lessons, level),
    )
    logger.info("path_replaced", user_id=user_id, level=level, lessons=len(lessons))
    return progress


# =============================================================================
# READ-TIME PREDICATES
# =============================================================================


def find_lesson(progress: LearningPathProgress, lesson_id: str) -> tuple[int, Lesson]:
    """Locate a lesson by id.

    Raises:
        NotFoundError: if the lesson is not in the path.
    """
    for index, lesson in enumerate(progress.lessons):
        if lesson.lesson_id == lesson_id:
            return index, lesson
    raise NotFoundError(f"Lesson {lesson_id} not found in path")


def is_unlocked(progress: LearningPathProgress, index: int) -> bool:
    if index < 0 or index >= len(progress.lessons):
        return False
    if index == 0:
        return True
    return progress.lessons[index - 1].completed


def unlock_states(progress: LearningPathProgress) -> list[bool]:
    """Accessibility of every lesson, in path order."""
    return [is_unlocked(progress, i) for i in range(len(progress.lessons))]


def require_unlocked(progress: LearningPathProgress, lesson_id: str) -> Lesson:
    index, lesson = find_lesson(progress, lesson_id)
    if not is_unlocked(progress, index):
        raise LessonLockedError(f"Lesson {lesson_id} is locked")
    return lesson


def can_take_lesson_test(progress: LearningPathProgress, lesson_id: str) -> bool:
    """Test access needs the lesson unlocked and its content viewed."""
    index, lesson = find_lesson(progress, lesson_id)
    return is_unlocked(progress, index) and lesson.content_viewed


def is_path_complete(progress: LearningPathProgress) -> bool:
    return bool(progress.lessons) and all(lesson.completed for lesson in progress.lessons)


def next_path_action(progress: LearningPathProgress | None, level: str) -> str | None:
    """What a mock result at `level` means for the stored path.

    Returns:
        "initialize" when there is no path, "replace" when the level changed,
        "regenerate" when the finished path is at the same level, else None.
    """
    if progress is None:
        return "initialize"
    if progress.current_level != level:
        return "replace"
    if is_path_complete(progress):
        return "regenerate"
    return None


# =============================================================================
# MUTATIONS
# =============================================================================


def mark_content_viewed(progress: LearningPathProgress, lesson_id: str) -> Lesson:
    """Record that the lesson content was opened.

    Raises:
        LessonLockedError: if the lesson is not yet reachable.
    """
    lesson = require_unlocked(progress, lesson_id)
    if not lesson.content_viewed:
        lesson.content_viewed = True
        _touch(progress)
    return lesson


def record_lesson_test_result(
    progress: LearningPathProgress,
    lesson_id: str,
    score: int,
    pass_threshold: int = DEFAULT_PASS_THRESHOLD,
) -> Lesson:
    """Store a lesson test score and update pass/completion flags.

    Raises:
        ValidationError: if score is outside 0-100.
        LessonLockedError: if the lesson is not yet reachable.
    """
    if not 0 <= score <= 100:
        raise ValidationError(f"Score out of range: {score}")

    lesson = require_unlocked(progress, lesson_id)
    lesson.test_score = score

    if score >= pass_threshold:
        lesson.test_passed = True
        lesson.completed = True
    else:
        lesson.test_passed = False

    _touch(progress)

    logger.info(
        "lesson_test_recorded",
        user_id=progress.user_id,
        lesson_id=lesson_id,
        score=score,
        passed=lesson.test_passed,
        progress_percentage=progress.progress_percentage,
    )
    return lesson
