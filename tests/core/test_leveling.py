"""Tests for the leveling engine: grading, placement bands and promotion ladder."""

from unittest.mock import MagicMock

import pytest

from learnpath.core.errors import GenerationError, ValidationError
from learnpath.core.leveling import (
    classify_score,
    evaluate_mock,
    evaluate_placement,
    grade_answers,
    promote,
    summarize,
    to_ladder_level,
)
from learnpath.core.models import TestQuestion
from learnpath.utils.scoring import percentage, round_half_up


def _questions(n: int) -> list[TestQuestion]:
    return [
        TestQuestion(question=f"Q{i}", options=("a", "b", "c", "d"), correct_answer="a")
        for i in range(n)
    ]


class TestScoring:
    """Tests for score arithmetic."""

    def test_round_half_up(self):
        """Halves round up, unlike round()."""
        assert round_half_up(37.5) == 38
        assert round_half_up(12.5) == 13
        assert round_half_up(12.4) == 12

    def test_percentage(self):
        """3 of 8 is 38."""
        assert percentage(3, 8) == 38
        assert percentage(0, 10) == 0
        assert percentage(10, 10) == 100

    def test_percentage_empty_total(self):
        """Zero total yields zero."""
        assert percentage(0, 0) == 0


class TestGradeAnswers:
    """Tests for answer validation and grading."""

    def test_grades_in_order(self):
        """Answers are paired with questions in order."""
        answered = grade_answers(_questions(3), ["a", "b", "a"])
        assert [q.is_correct for q in answered] == [True, False, True]
        assert [q.student_answer for q in answered] == ["a", "b", "a"]

    def test_rejects_unanswered(self):
        """A missing answer is a validation error."""
        with pytest.raises(ValidationError, match="unanswered"):
            grade_answers(_questions(2), ["a", None])

    def test_rejects_empty_answer(self):
        """An empty string counts as unanswered."""
        with pytest.raises(ValidationError):
            grade_answers(_questions(2), ["a", ""])

    def test_rejects_foreign_answer(self):
        """An answer outside the options is rejected."""
        with pytest.raises(ValidationError, match="not one of the options"):
            grade_answers(_questions(1), ["z"])

    def test_rejects_wrong_count(self):
        """Answer count must match question count."""
        with pytest.raises(ValidationError, match="Expected 3 answers"):
            grade_answers(_questions(3), ["a"])

    def test_summarize(self, make_answered):
        """Summary holds count and rounded score."""
        summary = summarize(make_answered([True, True, True] + [False] * 5))
        assert summary.correct_count == 3
        assert summary.total_questions == 8
        assert summary.score == 38


class TestClassifyScore:
    """Tests for placement band boundaries."""

    @pytest.mark.parametrize(
        "score,level",
        [
            (0, "beginner"),
            (40, "beginner"),
            (41, "intermediate"),
            (70, "intermediate"),
            (71, "advanced"),
            (100, "advanced"),
        ],
    )
    def test_band_boundaries(self, score, level):
        """Scores map onto the fixed bands."""
        assert classify_score(score) == level

    @pytest.mark.parametrize("score", [-1, 101])
    def test_out_of_range(self, score):
        """Scores outside 0-100 are rejected."""
        with pytest.raises(ValidationError):
            classify_score(score)


class TestEvaluatePlacement:
    """Tests for diagnostic/regular placement."""

    def test_level_from_bands_and_weak_areas_from_generator(self, make_answered, generator):
        """Level comes from the score; labels come from the generator."""
        result = evaluate_placement(make_answered([True] * 8 + [False] * 2), generator)

        assert result.score == 80
        assert result.level == "advanced"
        assert result.weak_areas == ["loops", "functions"]

    def test_only_wrong_answers_forwarded(self, make_answered):
        """The generator receives the wrong-answer set only."""
        generator = MagicMock()
        generator.evaluate_student_level.return_value = MagicMock(weak_areas=["x"], reasoning="r")

        evaluate_placement(make_answered([True, False, True, False]), generator)

        forwarded, score = generator.evaluate_student_level.call_args.args
        assert len(forwarded) == 2
        assert all(not q.is_correct for q in forwarded)
        assert score == 50

    def test_generator_failure_yields_empty_weak_areas(self, make_answered):
        """Unavailable labels are empty, never an error."""
        generator = MagicMock()
        generator.evaluate_student_level.side_effect = GenerationError("down")

        result = evaluate_placement(make_answered([False] * 10), generator)

        assert result.level == "beginner"
        assert result.weak_areas == []

    def test_all_correct_skips_generator(self, make_answered):
        """No wrong answers means nothing to label."""
        generator = MagicMock()
        result = evaluate_placement(make_answered([True] * 10), generator)

        assert result.weak_areas == []
        generator.evaluate_student_level.assert_not_called()


class TestPromote:
    """Tests for the promotion ladder."""

    def test_double_cascade(self):
        """Perfect easy and medium move a new learner straight to advanced."""
        assert promote(None, 5, 5, 0) == "advanced"

    def test_near_miss_no_promotion(self):
        """Easy 4/5 keeps a new learner at easy."""
        assert promote(None, 4, 0, 0) == "easy"

    def test_easy_promotes_to_medium(self):
        """Perfect easy band promotes to medium."""
        assert promote("easy", 5, 3, 1) == "medium"

    def test_medium_promotes_to_advanced(self):
        """Perfect medium band promotes to advanced."""
        assert promote("medium", 2, 5, 0) == "advanced"

    def test_advanced_never_demotes(self):
        """Advanced stays advanced on a low advanced score."""
        assert promote("advanced", 0, 0, 0) == "advanced"

    def test_advanced_with_perfect_easy_stays_advanced(self):
        """A perfect easy band cannot move an advanced learner down."""
        assert promote("advanced", 5, 2, 1) == "advanced"

    def test_medium_with_perfect_easy_stays_medium(self):
        """A perfect easy band at medium is not a demotion either."""
        assert promote("medium", 5, 4, 0) == "medium"

    def test_placement_levels_mapped_to_ladder(self):
        """Placement levels enter the ladder at their equivalent rung."""
        assert to_ladder_level("beginner") == "easy"
        assert to_ladder_level("intermediate") == "medium"
        assert promote("intermediate", 0, 0, 0) == "medium"


class TestEvaluateMock:
    """Tests for band-scored mock evaluation."""

    def _answered(self, make_answered, easy, medium, advanced):
        return (
            make_answered([i < easy for i in range(5)], level="easy")
            + make_answered([i < medium for i in range(5)], level="medium")
            + make_answered([i < advanced for i in range(5)], level="advanced")
        )

    def test_band_scores_and_promotion(self, make_answered):
        """Band scores are counted and the ladder applied."""
        result = evaluate_mock(self._answered(make_answered, 5, 5, 2), None)

        assert result.band_scores() == {"easy": 5, "medium": 5, "advanced": 2}
        assert result.promoted_level == "advanced"
        assert result.previous_level is None
        assert result.promoted
        assert result.correct_count == 12
        assert result.score == 80

    def test_no_promotion(self, make_answered):
        """Same level means not promoted."""
        result = evaluate_mock(self._answered(make_answered, 4, 1, 0), "easy")

        assert result.promoted_level == "easy"
        assert not result.promoted

    def test_wrong_band_counts_rejected(self, make_answered):
        """Mock tests need five questions per band."""
        answered = make_answered([True] * 15, level="easy")
        with pytest.raises(ValidationError, match="5 easy"):
            evaluate_mock(answered, None)
