"""Leveling engine: scores answered tests and decides level placement.

Two paths:
- Placement (diagnostic / regular tests): fixed score bands
  [0,40] beginner, [41,70] intermediate, [71,100] advanced, plus up to three
  weak-area labels judged by the content generator from the wrong answers.
- Promotion (mock tests, 5 questions per band): a one-way ladder
  easy -> medium -> advanced driven by perfect band scores. One attempt can
  cascade two steps.

Nothing here persists; callers store the results.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from learnpath.core.content_generator import ContentGenerator
from learnpath.core.errors import GenerationError, ValidationError
from learnpath.core.models import BANDS, AnsweredQuestion, Band, PlacementLevel, TestQuestion
from learnpath.utils.scoring import percentage

logger = structlog.get_logger(__name__)

# Upper bound (inclusive) of each placement band
PLACEMENT_BANDS: tuple[tuple[int, PlacementLevel], ...] = (
    (40, "beginner"),
    (70, "intermediate"),
    (100, "advanced"),
)

# Placement levels expressed on the promotion ladder
LADDER_EQUIVALENTS: dict[str, Band] = {
    "easy": "easy",
    "beginner": "easy",
    "medium": "medium",
    "intermediate": "medium",
    "advanced": "advanced",
}

DEFAULT_BAND_SIZE = 5


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class ScoreSummary:
    correct_count: int
    total_questions: int
    score: int


@dataclass
class PlacementResult:
    """Outcome of a diagnostic or regular test."""

    level: PlacementLevel
    score: int
    correct_count: int
    total_questions: int
    weak_areas: list[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class PromotionResult:
    """Outcome of a mock test."""

    promoted_level: Band
    previous_level: Band | None
    easy_score: int
    medium_score: int
    advanced_score: int
    score: int
    correct_count: int
    total_questions: int

    @property
    def promoted(self) -> bool:
        return self.promoted_level != self.previous_level

    def band_scores(self) -> dict[str, int]:
        return {
            "easy": self.easy_score,
            "medium": self.medium_score,
            "advanced": self.advanced_score,
        }


# =============================================================================
# GRADING
# =============================================================================


def grade_answers(
    questions: Sequence[TestQuestion],
    answers: Sequence[str | None],
) -> list[AnsweredQuestion]:
    """Pair answers with questions, rejecting incomplete or foreign answers.

    Raises:
        ValidationError: wrong answer count, an unanswered question, or an
            answer that is not one of the offered options.
    """
    if len(answers) != len(questions):
        raise ValidationError(
            f"Expected {len(questions)} answers, got {len(answers)}"
        )

    answered = []
    for i, (question, answer) in enumerate(zip(questions, answers), 1):
        if answer is None or answer == "":
            raise ValidationError(f"Question {i} is unanswered")
        if answer not in question.options:
            raise ValidationError(f"Answer to question {i} is not one of the options")
        answered.append(question.answer(answer))

    return answered


def summarize(answered: Sequence[AnsweredQuestion]) -> ScoreSummary:
    """Correct count and rounded percentage."""
    correct = sum(1 for q in answered if q.is_correct)
    return ScoreSummary(
        correct_count=correct,
        total_questions=len(answered),
        score=percentage(correct, len(answered)),
    )


def classify_score(score: int) -> PlacementLevel:
    """Map a 0-100 score onto the placement bands."""
    if not 0 <= score <= 100:
        raise ValidationError(f"Score out of range: {score}")

    for upper, level in PLACEMENT_BANDS:
        if score <= upper:
            return level
    return "advanced"


def to_ladder_level(level: str | None) -> Band | None:
    """Express any profile level on the easy/medium/advanced ladder."""
    if level is None:
        return None
    return LADDER_EQUIVALENTS.get(level)


def band_scores(answered: Sequence[AnsweredQuestion]) -> dict[str, int]:
    """Correct answers per band."""
    scores = {band: 0 for band in BANDS}
    for q in answered:
        if q.level in scores and q.is_correct:
            scores[q.level] += 1
    return scores


# =============================================================================
# PLACEMENT
# =============================================================================


def derive_weak_areas(
    answered: Sequence[AnsweredQuestion],
    score: int,
    generator: ContentGenerator | None,
) -> tuple[list[str], str]:
    """Forward the wrong answers to the generator and collect its labels.

    Returns (weak_areas, reasoning). Any generator failure yields no labels.
    """
    wrong = [q for q in answered if not q.is_correct]
    if generator is None or not wrong:
        return [], ""

    try:
        evaluation = generator.evaluate_student_level(wrong, score)
    except GenerationError as e:
        logger.warning("weak_areas_unavailable", error=str(e))
        return [], ""

    return evaluation.weak_areas, evaluation.reasoning


def evaluate_placement(
    answered: Sequence[AnsweredQuestion],
    generator: ContentGenerator | None = None,
) -> PlacementResult:
    """Score a diagnostic or regular test and place the learner."""
    summary = summarize(answered)
    level = classify_score(summary.score)
    weak_areas, reasoning = derive_weak_areas(answered, summary.score, generator)

    logger.info(
        "placement_evaluated",
        score=summary.score,
        level=level,
        weak_areas=len(weak_areas),
    )

    return PlacementResult(
        level=level,
        score=summary.score,
        correct_count=summary.correct_count,
        total_questions=summary.total_questions,
        weak_areas=weak_areas,
        reasoning=reasoning,
    )


# =============================================================================
# PROMOTION
# =============================================================================


def promote(
    current_level: str | None,
    easy_score: int,
    medium_score: int,
    advanced_score: int,
    band_size: int = DEFAULT_BAND_SIZE,
) -> Band:
    """Apply the promotion ladder. Later checks override earlier ones.

    The ladder never demotes: the result is never below the current level.
    """
    current = to_ladder_level(current_level)

    promoted: Band = current or "easy"
    if easy_score == band_size:
        promoted = "medium"
    if medium_score == band_size:
        promoted = "advanced"
    if current == "advanced" and advanced_score < band_size:
        promoted = "advanced"

    if current is not None and BANDS.index(promoted) < BANDS.index(current):
        promoted = current

    return promoted


def evaluate_mock(
    answered: Sequence[AnsweredQuestion],
    current_level: str | None,
    band_size: int = DEFAULT_BAND_SIZE,
) -> PromotionResult:
    """Score a band-tagged mock test and decide promotion.

    Raises:
        ValidationError: if the questions are not band_size per band.
    """
    for band in BANDS:
        count = sum(1 for q in answered if q.level == band)
        if count != band_size:
            raise ValidationError(f"Mock test needs {band_size} {band} questions, got {count}")

    scores = band_scores(answered)
    summary = summarize(answered)
    previous = to_ladder_level(current_level)
    promoted = promote(
        previous,
        scores["easy"],
        scores["medium"],
        scores["advanced"],
        band_size=band_size,
    )

    logger.info(
        "mock_test_scored",
        score=summary.score,
        previous_level=previous,
        promoted_level=promoted,
        **{f"{band}_score": value for band, value in scores.items()},
    )

    return PromotionResult(
        promoted_level=promoted,
        previous_level=previous,
        easy_score=scores["easy"],
        medium_score=scores["medium"],
        advanced_score=scores["advanced"],
        score=summary.score,
        correct_count=summary.correct_count,
        total_questions=summary.total_questions,
    )
