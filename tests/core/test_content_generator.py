"""Tests for the content generator's payload validation."""

from unittest.mock import MagicMock

import pytest

from learnpath.config.app_config import LearningConfig
from learnpath.core.content_generator import ContentGenerator, difficulty_for_level
from learnpath.core.errors import GenerationError
from learnpath.llm.client import LLMConnectionError, LLMResponseError


class TestQuestionSets:
    """Tests for generated question sets."""

    def test_diagnostic_has_ten_questions(self, generator):
        """Diagnostic tests hold 10 validated questions."""
        questions = generator.generate_diagnostic_test()

        assert len(questions) == 10
        assert questions[0].options == ("A1", "B1", "C1", "D1")
        assert questions[0].correct_answer == "A1"

    def test_short_set_rejected(self, generator, mock_llm_client, question_set_payload):
        """Nine questions instead of ten is a hard failure."""
        mock_llm_client.responses["diagnostic"] = question_set_payload(9)

        with pytest.raises(GenerationError, match="expected 10 questions"):
            generator.generate_diagnostic_test()

    def test_three_options_rejected(self, generator, mock_llm_client, question_set_payload):
        """Every question needs four options."""
        payload = question_set_payload(10)
        payload["questions"][3]["options"] = ["A4", "B4", "C4"]
        mock_llm_client.responses["diagnostic"] = payload

        with pytest.raises(GenerationError, match="malformed"):
            generator.generate_diagnostic_test()

    def test_duplicate_options_rejected(self, generator, mock_llm_client, question_set_payload):
        """Options must be distinct."""
        payload = question_set_payload(10)
        payload["questions"][0]["options"] = ["A1", "A1", "C1", "D1"]
        mock_llm_client.responses["diagnostic"] = payload

        with pytest.raises(GenerationError):
            generator.generate_diagnostic_test()

    def test_answer_not_in_options_rejected(self, generator, mock_llm_client, question_set_payload):
        """correctAnswer must match an option verbatim."""
        payload = question_set_payload(10)
        payload["questions"][0]["correctAnswer"] = "a1"
        mock_llm_client.responses["diagnostic"] = payload

        with pytest.raises(GenerationError):
            generator.generate_diagnostic_test()

    def test_missing_field_rejected(self, generator, mock_llm_client, question_set_payload):
        """Missing question text is rejected."""
        payload = question_set_payload(10)
        del payload["questions"][0]["question"]
        mock_llm_client.responses["diagnostic"] = payload

        with pytest.raises(GenerationError):
            generator.generate_diagnostic_test()

    def test_level_based_test_prompt_uses_difficulty(self, generator, mock_llm_client):
        """Level tests are pitched with the mapped difficulty."""
        generator.generate_level_based_test("advanced")

        user_prompt = mock_llm_client.simple_json.call_args.args[1]
        assert "hard level test" in user_prompt

    def test_lesson_test_has_five_questions(self, generator):
        """Lesson tests hold five questions."""
        assert len(generator.generate_lesson_test("lesson-1", "Lesson 1", "easy")) == 5


class TestMockTest:
    """Tests for band-tagged mock tests."""

    def test_five_per_band(self, generator):
        """Fifteen questions, five per band."""
        questions = generator.generate_mock_test()

        assert len(questions) == 15
        assert [q.level for q in questions].count("medium") == 5

    def test_unbalanced_bands_rejected(self, generator, mock_llm_client, mock_test_payload):
        """Six easy and four medium is rejected."""
        mock_test_payload["questions"][5]["level"] = "easy"
        mock_llm_client.responses["mock"] = mock_test_payload

        with pytest.raises(GenerationError, match="easy"):
            generator.generate_mock_test()

    def test_missing_band_tag_rejected(self, generator, mock_llm_client, mock_test_payload):
        """Mock questions must carry their band."""
        del mock_test_payload["questions"][0]["level"]
        mock_llm_client.responses["mock"] = mock_test_payload

        with pytest.raises(GenerationError):
            generator.generate_mock_test()


class TestLearningPath:
    """Tests for generated learning paths."""

    def test_valid_path(self, generator):
        """Lessons are built in order with the requested level."""
        path = generator.generate_learning_path("easy", ["loops"])

        assert [lesson.lesson_id for lesson in path.lessons][:2] == ["lesson-1", "lesson-2"]
        assert all(lesson.level == "easy" for lesson in path.lessons)
        assert path.lessons[0].estimated_duration == "20 minutes"

    def test_weak_areas_in_prompt(self, generator, mock_llm_client):
        """Weak areas are passed to the model."""
        generator.generate_learning_path("easy", ["loops", "recursion"])

        user_prompt = mock_llm_client.simple_json.call_args.args[1]
        assert "loops, recursion" in user_prompt

    @pytest.mark.parametrize("count", [5, 9])
    def test_lesson_count_bounds(self, generator, mock_llm_client, path_payload, count):
        """Six to eight lessons only."""
        mock_llm_client.responses["path"] = path_payload(count)

        with pytest.raises(GenerationError, match="lessons"):
            generator.generate_learning_path("easy")

    def test_duplicate_lesson_ids_rejected(self, generator, mock_llm_client, path_payload):
        """Lesson ids must be unique."""
        payload = path_payload(6)
        payload["lessons"][1]["lessonId"] = "lesson-1"
        mock_llm_client.responses["path"] = payload

        with pytest.raises(GenerationError):
            generator.generate_learning_path("easy")

    def test_empty_content_rejected(self, generator, mock_llm_client, path_payload):
        """Lessons need content."""
        payload = path_payload(6)
        payload["lessons"][2]["content"] = ""
        mock_llm_client.responses["path"] = payload

        with pytest.raises(GenerationError):
            generator.generate_learning_path("easy")


class TestEvaluation:
    """Tests for level evaluation."""

    def test_weak_areas_truncated_to_three(self, generator, mock_llm_client, make_answered):
        """At most three weak areas are kept."""
        mock_llm_client.responses["evaluate"] = {
            "level": "beginner",
            "reasoning": "r",
            "weakAreas": ["a", "b", "c", "d"],
        }

        evaluation = generator.evaluate_student_level(make_answered([False, False]), 0)
        assert evaluation.weak_areas == ["a", "b", "c"]

    def test_unknown_level_rejected(self, generator, mock_llm_client, make_answered):
        """Levels outside the placement enum are rejected."""
        mock_llm_client.responses["evaluate"] = {"level": "expert", "reasoning": ""}

        with pytest.raises(GenerationError):
            generator.evaluate_student_level(make_answered([False]), 0)


class TestFailures:
    """Tests for transport failures and configuration."""

    def test_llm_error_becomes_generation_error(self, generator, mock_llm_client):
        """Client errors surface as GenerationError."""
        mock_llm_client.responses["diagnostic"] = LLMConnectionError("refused")

        with pytest.raises(GenerationError, match="refused"):
            generator.generate_diagnostic_test()

    def test_unparsable_json_becomes_generation_error(self, generator, mock_llm_client):
        """Unrecoverable JSON is a GenerationError."""
        mock_llm_client.responses["mock"] = LLMResponseError("Could not obtain valid JSON")

        with pytest.raises(GenerationError):
            generator.generate_mock_test()

    def test_unconfigured_generator_refuses(self):
        """Without credentials no request is made."""
        client = MagicMock()
        generator = ContentGenerator(client=client, learning=LearningConfig(), configured=False)

        with pytest.raises(GenerationError, match="not configured"):
            generator.generate_diagnostic_test()
        client.simple_json.assert_not_called()

    @pytest.mark.parametrize(
        "level,difficulty",
        [("beginner", "easy"), ("medium", "moderate"), ("advanced", "hard"), (None, "moderate"), ("x", "moderate")],
    )
    def test_difficulty_map(self, level, difficulty):
        """Levels map onto prompt difficulty, moderate by default."""
        assert difficulty_for_level(level) == difficulty
