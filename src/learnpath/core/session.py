"""Learning flows: test lifecycle, lesson access and path generation.

Each flow receives an explicit SessionContext (profile plus active path) for
one user. Store and generator calls are blocking and run in worker threads.
Foreground steps propagate errors to the caller; the persistence that follows
a mock or lesson submission runs as background tasks whose failures are
logged and never retract the returned result.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Literal

import structlog

from learnpath.config.app_config import LearningConfig, load_app_config
from learnpath.core import analytics as analytics_engine
from learnpath.core import progress_tracker
from learnpath.core.content_generator import ContentGenerator
from learnpath.core.errors import AlreadyExistsError, NotFoundError, ValidationError
from learnpath.core.leveling import (
    PlacementResult,
    PromotionResult,
    evaluate_mock,
    evaluate_placement,
    grade_answers,
    summarize,
    to_ladder_level,
)
from learnpath.core.live_updates import ChangeFeed, get_change_feed
from learnpath.core.models import (
    Analytics,
    LearningPathProgress,
    Lesson,
    TestAttempt,
    TestKind,
    TestQuestion,
    UserProfile,
)
from learnpath.db import analytics_repository, attempts_repository, progress_repository, users_repository

logger = structlog.get_logger(__name__)

StartKind = Literal["placement", "mock", "lesson"]


# =============================================================================
# CONTEXT AND RESULTS
# =============================================================================


@dataclass
class SessionContext:
    """Everything a flow needs to know about the acting user."""

    user_id: str
    subject: str
    profile: UserProfile
    progress: LearningPathProgress | None = None


@dataclass
class PendingTest:
    """A generated test waiting for answers. Holds the correct answers."""

    __test__ = False

    user_id: str
    kind: TestKind
    questions: list[TestQuestion]
    level: str | None = None
    lesson_id: str | None = None
    test_id: str = ""
    created_at: str = ""

    def __post_init__(self):
        if not self.test_id:
            self.test_id = str(uuid.uuid4())[:8]
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()

    def public_questions(self) -> list[dict[str, Any]]:
        """Questions as shown to the learner, without answers."""
        result = []
        for q in self.questions:
            item: dict[str, Any] = {"question": q.question, "options": list(q.options)}
            if q.level is not None:
                item["level"] = q.level
            result.append(item)
        return result


@dataclass
class TestOutcome:
    """Result shown to the learner right after submission."""

    __test__ = False

    attempt: TestAttempt
    placement: PlacementResult | None = None
    promotion: PromotionResult | None = None
    lesson: Lesson | None = None
    progress_percentage: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.attempt.type,
            "score": self.attempt.score,
            "correct_count": self.attempt.correct_count,
            "total_questions": self.attempt.total_questions,
            "level": self.attempt.level,
            "questions": [q.to_dict() for q in self.attempt.questions],
        }
        if self.placement is not None:
            result["weak_areas"] = list(self.placement.weak_areas)
            result["reasoning"] = self.placement.reasoning
        if self.promotion is not None:
            result["promoted_level"] = self.promotion.promoted_level
            result["previous_level"] = self.promotion.previous_level
            result["promoted"] = self.promotion.promoted
            result["band_scores"] = self.promotion.band_scores()
        if self.lesson is not None:
            result["lesson_id"] = self.lesson.lesson_id
            result["test_passed"] = self.lesson.test_passed
            result["completed"] = self.lesson.completed
            result["progress_percentage"] = self.progress_percentage
        return result


async def load_context(user_id: str, subject: str) -> SessionContext:
    """Fetch profile and active path in parallel.

    Raises:
        NotFoundError: if the user is not registered.
    """
    profile, progress = await asyncio.gather(
        asyncio.to_thread(users_repository.get_user, user_id),
        asyncio.to_thread(progress_repository.get_progress, user_id, subject),
    )
    if profile is None:
        raise NotFoundError(f"User not found: {user_id}")
    return SessionContext(user_id=user_id, subject=subject, profile=profile, progress=progress)


# =============================================================================
# SERVICE
# =============================================================================


class LearningService:
    """Runs the test, lesson and path flows against the store and generator."""

    def __init__(
        self,
        generator: ContentGenerator,
        feed: ChangeFeed | None = None,
        learning: LearningConfig | None = None,
    ):
        self.generator = generator
        self.feed = feed or get_change_feed()
        self.learning = learning or generator.learning
        self._background: set[asyncio.Task] = set()

    @property
    def subject(self) -> str:
        return self.learning.subject

    async def context(self, user_id: str) -> SessionContext:
        return await load_context(user_id, self.subject)

    # -------------------------------------------------------------------------
    # Background work
    # -------------------------------------------------------------------------

    def _schedule(self, user_id: str, operations: dict[str, Awaitable[Any]]) -> asyncio.Task:
        task = asyncio.create_task(self._run_background(user_id, operations))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_background(self, user_id: str, operations: dict[str, Awaitable[Any]]) -> None:
        """Run independent operations concurrently; log each failure."""
        names = list(operations)
        results = await asyncio.gather(*operations.values(), return_exceptions=True)

        failed = 0
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                failed += 1
                logger.error(
                    "background_operation_failed",
                    user_id=user_id,
                    operation=name,
                    error=str(result),
                    error_type=type(result).__name__,
                )

        logger.info("background_operations_done", user_id=user_id, total=len(names), failed=failed)

    async def drain(self) -> None:
        """Wait for every scheduled background task to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def pending_background(self) -> int:
        return len(self._background)

    # -------------------------------------------------------------------------
    # Store helpers (write then publish)
    # -------------------------------------------------------------------------

    async def _save_profile(self, profile: UserProfile) -> None:
        await asyncio.to_thread(users_repository.update_user, profile)
        await self.feed.publish(profile.user_id, "profile", profile.to_dict())

    async def _save_attempt(self, attempt: TestAttempt) -> str:
        attempt_id = await asyncio.to_thread(attempts_repository.insert_attempt, attempt)
        await self.feed.publish(attempt.user_id, "attempts", attempt.to_dict())
        return attempt_id

    async def _save_progress(self, progress: LearningPathProgress) -> None:
        await asyncio.to_thread(progress_repository.save_progress, progress)
        await self.feed.publish(progress.user_id, "progress", progress.to_dict())

    async def _save_analytics(self, analytics: Analytics) -> None:
        await asyncio.to_thread(analytics_repository.save_analytics, analytics)
        await self.feed.publish(analytics.user_id, "analytics", analytics.to_dict())

    # -------------------------------------------------------------------------
    # Starting tests
    # -------------------------------------------------------------------------

    async def start_test(
        self,
        ctx: SessionContext,
        kind: StartKind,
        lesson_id: str | None = None,
    ) -> PendingTest:
        """Generate a test for the learner.

        "placement" yields the diagnostic test until one is completed and a
        level-based regular test afterwards.

        Raises:
            ValidationError: non-student caller, unknown kind, or a lesson
                test whose content has not been viewed.
            LessonLockedError: lesson test for a locked lesson.
            NotFoundError: lesson test without a path or unknown lesson.
            GenerationError: the generator output was unusable.
        """
        if not ctx.profile.is_student:
            raise ValidationError("Only students take tests")

        if kind == "placement":
            if not ctx.profile.diagnostic_completed:
                questions = await asyncio.to_thread(self.generator.generate_diagnostic_test)
                pending = PendingTest(user_id=ctx.user_id, kind="diagnostic", questions=questions)
            else:
                level = ctx.profile.level
                questions = await asyncio.to_thread(self.generator.generate_level_based_test, level)
                pending = PendingTest(user_id=ctx.user_id, kind="regular", questions=questions, level=level)

        elif kind == "mock":
            level = self._current_ladder_level(ctx)
            questions = await asyncio.to_thread(self.generator.generate_mock_test)
            pending = PendingTest(user_id=ctx.user_id, kind="mock", questions=questions, level=level)

        elif kind == "lesson":
            if lesson_id is None:
                raise ValidationError("lesson_id is required for a lesson test")
            progress = self._require_progress(ctx)
            lesson = progress_tracker.require_unlocked(progress, lesson_id)
            if not progress_tracker.can_take_lesson_test(progress, lesson_id):
                raise ValidationError(f"View lesson {lesson_id} before taking its test")
            questions = await asyncio.to_thread(
                self.generator.generate_lesson_test,
                lesson.lesson_id,
                lesson.title,
                progress.current_level,
            )
            pending = PendingTest(
                user_id=ctx.user_id,
                kind="lesson",
                questions=questions,
                level=progress.current_level,
                lesson_id=lesson_id,
            )

        else:
            raise ValidationError(f"Unknown test kind: {kind}")

        logger.info(
            "test_started",
            user_id=ctx.user_id,
            kind=pending.kind,
            test_id=pending.test_id,
            questions=len(pending.questions),
        )
        return pending

    # -------------------------------------------------------------------------
    # Submitting tests
    # -------------------------------------------------------------------------

    async def submit_test(
        self,
        ctx: SessionContext,
        pending: PendingTest,
        answers: Sequence[str | None],
    ) -> TestOutcome:
        """Grade a pending test and apply its effects.

        Raises:
            ValidationError: answers are incomplete or not among the options
                (checked before any store or generator call).
        """
        if pending.user_id != ctx.user_id:
            raise ValidationError("Test belongs to another user")

        answered = grade_answers(pending.questions, answers)

        if pending.kind == "diagnostic":
            return await self._submit_diagnostic(ctx, answered)
        if pending.kind == "regular":
            return await self._submit_regular(ctx, pending, answered)
        if pending.kind == "mock":
            return await self._submit_mock(ctx, pending, answered)
        return await self._submit_lesson(ctx, pending, answered)

    def _attempt(self, ctx: SessionContext, kind: TestKind, answered, level, **extra) -> TestAttempt:
        summary = summarize(answered)
        return TestAttempt(
            user_id=ctx.user_id,
            subject=self.subject,
            level=level,
            type=kind,
            questions=list(answered),
            score=summary.score,
            correct_count=summary.correct_count,
            total_questions=summary.total_questions,
            **extra,
        )

    async def _submit_diagnostic(self, ctx: SessionContext, answered) -> TestOutcome:
        placement = await asyncio.to_thread(evaluate_placement, answered, self.generator)

        profile = ctx.profile
        profile.level = placement.level
        profile.diagnostic_completed = True
        profile.weak_areas = list(placement.weak_areas)

        attempt = self._attempt(ctx, "diagnostic", answered, placement.level)
        await self._save_profile(profile)
        await self._save_attempt(attempt)

        logger.info(
            "diagnostic_completed",
            user_id=ctx.user_id,
            score=placement.score,
            level=placement.level,
            weak_areas=placement.weak_areas,
        )
        return TestOutcome(attempt=attempt, placement=placement)

    async def _submit_regular(self, ctx: SessionContext, pending: PendingTest, answered) -> TestOutcome:
        placement = await asyncio.to_thread(evaluate_placement, answered, self.generator)

        attempt = self._attempt(ctx, "regular", answered, placement.level)
        await self._save_attempt(attempt)

        logger.info(
            "regular_test_completed",
            user_id=ctx.user_id,
            score=placement.score,
            level=placement.level,
            profile_level=ctx.profile.level,
        )
        return TestOutcome(attempt=attempt, placement=placement)

    async def _submit_mock(self, ctx: SessionContext, pending: PendingTest, answered) -> TestOutcome:
        result = evaluate_mock(
            answered,
            self._current_ladder_level(ctx),
            band_size=self.learning.mock_band_size,
        )
        attempt = self._attempt(
            ctx,
            "mock",
            answered,
            result.promoted_level,
            band_scores=result.band_scores(),
            promoted_to=result.promoted_level,
        )

        self._schedule(
            ctx.user_id,
            {
                "save_attempt": self._save_attempt(attempt),
                "update_analytics": self._apply_mock_analytics(ctx.user_id, result),
                "update_profile": self._apply_mock_profile(ctx, result),
                "update_path": self._apply_mock_path(ctx, result),
            },
        )
        return TestOutcome(attempt=attempt, promotion=result)

    async def _submit_lesson(self, ctx: SessionContext, pending: PendingTest, answered) -> TestOutcome:
        progress = self._require_progress(ctx)
        attempt = self._attempt(ctx, "lesson", answered, progress.current_level, lesson_id=pending.lesson_id)

        lesson = progress_tracker.record_lesson_test_result(
            progress,
            pending.lesson_id,
            attempt.score,
            pass_threshold=self.learning.lesson_pass_threshold,
        )
        await self._save_progress(progress)

        self._schedule(ctx.user_id, {"save_attempt": self._save_attempt(attempt)})

        if progress_tracker.is_path_complete(progress):
            logger.info("path_completed", user_id=ctx.user_id, level=progress.current_level)

        return TestOutcome(
            attempt=attempt,
            lesson=lesson,
            progress_percentage=progress.progress_percentage,
        )

    # -------------------------------------------------------------------------
    # Mock follow-ups
    # -------------------------------------------------------------------------

    async def _apply_mock_analytics(self, user_id: str, result: PromotionResult) -> None:
        existing = await asyncio.to_thread(analytics_repository.get_analytics, user_id)
        updated = analytics_engine.record_mock_result(
            existing,
            user_id,
            result.easy_score,
            result.medium_score,
            result.advanced_score,
            result.promoted_level,
            result.previous_level,
            subject=self.subject,
        )
        await self._save_analytics(updated)

    async def _apply_mock_profile(self, ctx: SessionContext, result: PromotionResult) -> None:
        if ctx.profile.level == result.promoted_level:
            return
        ctx.profile.level = result.promoted_level
        await self._save_profile(ctx.profile)

    async def _apply_mock_path(self, ctx: SessionContext, result: PromotionResult) -> None:
        action = progress_tracker.next_path_action(ctx.progress, result.promoted_level)
        if action is None:
            return

        generated = await asyncio.to_thread(
            self.generator.generate_learning_path,
            result.promoted_level,
            list(ctx.profile.weak_areas),
        )
        if action == "initialize":
            progress = progress_tracker.initialize_path(
                ctx.progress, ctx.user_id, result.promoted_level, generated.lessons, self.subject
            )
        else:
            progress = progress_tracker.replace_path(
                ctx.user_id, result.promoted_level, generated.lessons, self.subject
            )

        await self._save_progress(progress)
        ctx.progress = progress
        logger.info("path_updated_after_mock", user_id=ctx.user_id, action=action, level=result.promoted_level)

    # -------------------------------------------------------------------------
    # Lessons and paths
    # -------------------------------------------------------------------------

    async def view_lesson(self, ctx: SessionContext, lesson_id: str) -> Lesson:
        """Open a lesson's content and remember that it was viewed.

        Raises:
            NotFoundError: no path or unknown lesson.
            LessonLockedError: the previous lesson is not completed.
        """
        progress = self._require_progress(ctx)
        already_viewed = progress_tracker.require_unlocked(progress, lesson_id).content_viewed

        lesson = progress_tracker.mark_content_viewed(progress, lesson_id)
        if not already_viewed:
            await self._save_progress(progress)
        return lesson

    async def generate_path(self, ctx: SessionContext, replace: bool = False) -> LearningPathProgress:
        """Generate a learning path at the learner's level.

        Raises:
            AlreadyExistsError: a path exists and replace is False.
            GenerationError: the generator output was unusable.
        """
        if ctx.progress is not None and not replace:
            raise AlreadyExistsError(f"User {ctx.user_id} already has a {self.subject} learning path")

        level = self._current_ladder_level(ctx) or "easy"
        generated = await asyncio.to_thread(
            self.generator.generate_learning_path,
            level,
            list(ctx.profile.weak_areas),
        )

        if ctx.progress is None:
            progress = progress_tracker.initialize_path(None, ctx.user_id, level, generated.lessons, self.subject)
        else:
            progress = progress_tracker.replace_path(ctx.user_id, level, generated.lessons, self.subject)

        await self._save_progress(progress)
        ctx.progress = progress
        return progress

    def lesson_states(self, ctx: SessionContext) -> list[dict[str, Any]]:
        """Lessons with their read-time unlock state.

        Locked lessons are listed without their content.
        """
        progress = self._require_progress(ctx)
        unlocked = progress_tracker.unlock_states(progress)
        states = []
        for lesson, is_open in zip(progress.lessons, unlocked):
            state = {**lesson.to_dict(), "unlocked": is_open}
            if not is_open:
                state["content"] = None
            states.append(state)
        return states

    # -------------------------------------------------------------------------
    # Read models
    # -------------------------------------------------------------------------

    async def attempts(self, user_id: str, type: str | None = None) -> list[TestAttempt]:
        return await asyncio.to_thread(
            attempts_repository.list_attempts, user_id, self.subject, type
        )

    async def student_dashboard(self, user_id: str) -> analytics_engine.StudentDashboard:
        profile, attempts = await asyncio.gather(
            asyncio.to_thread(users_repository.require_user, user_id),
            self.attempts(user_id),
        )
        return analytics_engine.student_dashboard(profile, attempts)

    async def student_overviews(self) -> list[analytics_engine.StudentOverview]:
        students, progress_by_user = await asyncio.gather(
            asyncio.to_thread(users_repository.list_users, "student"),
            asyncio.to_thread(progress_repository.list_progress, self.subject),
        )
        return [
            analytics_engine.student_overview(student, progress_by_user.get(student.user_id))
            for student in students
        ]

    async def class_summary(self) -> analytics_engine.ClassSummary:
        students, progress_by_user, attempts = await asyncio.gather(
            asyncio.to_thread(users_repository.list_users, "student"),
            asyncio.to_thread(progress_repository.list_progress, self.subject),
            asyncio.to_thread(attempts_repository.list_attempts, None, self.subject),
        )
        return analytics_engine.class_summary(students, progress_by_user, attempts)

    async def student_details(self, user_id: str) -> dict[str, Any]:
        """Profile, path, analytics and attempts of one student."""
        profile = await asyncio.to_thread(users_repository.require_user, user_id)
        progress, analytics, attempts = await asyncio.gather(
            asyncio.to_thread(progress_repository.get_progress, user_id, self.subject),
            asyncio.to_thread(analytics_repository.get_analytics, user_id),
            self.attempts(user_id),
        )
        return {
            "profile": profile.to_dict(),
            "progress": progress.to_dict() if progress else None,
            "analytics": analytics.to_dict() if analytics else None,
            "attempts": [a.to_dict() for a in attempts],
        }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _current_ladder_level(self, ctx: SessionContext) -> str | None:
        if ctx.progress is not None and ctx.progress.current_level:
            return to_ladder_level(ctx.progress.current_level)
        return to_ladder_level(ctx.profile.level)

    def _require_progress(self, ctx: SessionContext) -> LearningPathProgress:
        if ctx.progress is None:
            raise NotFoundError(f"No learning path for user {ctx.user_id}")
        return ctx.progress


# Global service instance
_learning_service: LearningService | None = None


def get_learning_service() -> LearningService:
    """Get the global learning service, wired from the app config."""
    global _learning_service
    if _learning_service is None:
        app_config = load_app_config()
        _learning_service = LearningService(
            generator=ContentGenerator.from_app_config(app_config),
            learning=app_config.learning,
        )
    return _learning_service


def set_learning_service(service: LearningService | None) -> None:
    """Install a specific service (for testing)."""
    global _learning_service
    _learning_service = service


def reset_learning_service() -> None:
    """Reset the learning service (for testing)."""
    global _learning_service
    _learning_service = None


async def shutdown_learning_service() -> None:
    """Let pending background writes finish before exit."""
    if _learning_service is not None:
        await _learning_service.drain()
