"""Content generator: AI-generated tests, lesson paths and level evaluations.

Responsibilities:
- Prompt the LLM for question sets, learning paths and level evaluations
- Validate every payload against an explicit schema before building
  domain entities
- Reject malformed or short payloads with GenerationError (no partial
  acceptance)

Payload shapes (camelCase keys, as returned by the model):
- questions: [{question, options[4], correctAnswer, level?}]
- learning path: {subject, lessons: [{lessonId, title, description, content,
  difficulty?, topics?, estimatedDuration?}]}
- evaluation: {level, reasoning, weakAreas?}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from learnpath.config.app_config import AppConfig, LearningConfig, check_ai_credentials, load_app_config
from learnpath.core.errors import GenerationError
from learnpath.core.models import AnsweredQuestion, Lesson, TestQuestion
from learnpath.llm.client import LLMClient, LLMConfig, LLMError

logger = structlog.get_logger(__name__)

MAX_WEAK_AREAS = 3

# Level -> difficulty wording for level-based tests
DIFFICULTY_MAP: dict[str, str] = {
    "beginner": "easy",
    "easy": "easy",
    "intermediate": "moderate",
    "medium": "moderate",
    "advanced": "hard",
}

# =============================================================================
# PROMPTS
# =============================================================================

QUESTION_FORMAT = """{{
  "questions": [
    {{
      "question": "question text here",
      "options": ["option A", "option B", "option C", "option D"],
      "correctAnswer": "exact text of correct option"{level_field}
    }}
  ]
}}"""

SYSTEM_PROMPT_JSON = """You are an expert {subject} instructor who writes assessment material.

STRICT RULES:
1. Reply ONLY with a valid JSON object, no markdown and no explanations
2. Every question has exactly 4 distinct options
3. correctAnswer must repeat the text of one option verbatim"""

USER_PROMPT_DIAGNOSTIC = """Generate a diagnostic test with {n} multiple-choice questions to assess a student's
general {subject} knowledge and logical reasoning level. Mix easy, medium, and hard questions.

Return a JSON object in this EXACT format:

{question_format}"""

USER_PROMPT_LEVEL_TEST = """Generate a {difficulty} level test with {n} multiple-choice questions for a {level} {subject} student.
The questions should be appropriate for {level} level students.

Return a JSON object in this EXACT format:

{question_format}"""

USER_PROMPT_MOCK = """Generate an adaptive {subject} mock test with exactly {total} multiple-choice questions:
- {band_size} "easy" questions ({subject} basics, syntax, variables)
- {band_size} "medium" questions (OOP, data structures, modules)
- {band_size} "advanced" questions (decorators, generators, async/await)

Tag every question with its level.

Return a JSON object in this EXACT format:

{question_format}"""

USER_PROMPT_LESSON_TEST = """Generate a test with {n} multiple-choice questions checking the lesson
"{title}" (id: {lesson_id}) for a {level} {subject} student.

Return a JSON object in this EXACT format:

{question_format}"""

USER_PROMPT_LEARNING_PATH = """Create a personalized {subject} learning path for a {level} level student.
{weak_areas_line}
Produce between {min_lessons} and {max_lessons} lessons in the order they should be studied.
Each lesson needs a unique lessonId, a title, a short description and full lesson content.

Return a JSON object in this EXACT format:

{{
  "subject": "{subject}",
  "lessons": [
    {{
      "lessonId": "lesson-1",
      "title": "lesson title",
      "description": "one sentence summary",
      "content": "lesson body",
      "difficulty": "{level}",
      "topics": ["topic"],
      "estimatedDuration": "20 minutes"
    }}
  ]
}}"""

USER_PROMPT_EVALUATE = """Based on the following test results, classify the student's knowledge level as
"beginner", "intermediate", or "advanced", and name up to {max_weak} weak areas shown by
systematically wrong answers.

Score: {score}%
Questions listed below: {total}

Answers to review:
{answers}

Return a JSON object in this EXACT format:

{{
  "level": "beginner" | "intermediate" | "advanced",
  "reasoning": "brief explanation of classification",
  "weakAreas": ["area"]
}}

Classification criteria:
- beginner: 0-40% score
- intermediate: 41-70% score
- advanced: 71-100% score"""


# =============================================================================
# PAYLOAD SCHEMAS
# =============================================================================


class QuestionPayload(BaseModel):
    """A generated question as returned by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: str = Field(min_length=1)
    options: list[str]
    correct_answer: str = Field(alias="correctAnswer")
    level: Literal["easy", "medium", "advanced"] | None = None

    @field_validator("options")
    @classmethod
    def _four_distinct_options(cls, value: list[str]) -> list[str]:
        if len(value) != 4:
            raise ValueError(f"expected 4 options, got {len(value)}")
        if any(not option.strip() for option in value):
            raise ValueError("empty option")
        if len(set(value)) != 4:
            raise ValueError("duplicate options")
        return value

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> QuestionPayload:
        if self.correct_answer not in self.options:
            raise ValueError("correctAnswer does not match any option")
        return self

    def to_question(self) -> TestQuestion:
        return TestQuestion(
            question=self.question,
            options=tuple(self.options),
            correct_answer=self.correct_answer,
            level=self.level,
        )


class MockQuestionPayload(QuestionPayload):
    """Mock-test question: the band tag is mandatory."""

    level: Literal["easy", "medium", "advanced"]


class QuestionSetPayload(BaseModel):
    questions: list[QuestionPayload]


class MockQuestionSetPayload(BaseModel):
    questions: list[MockQuestionPayload]


class LessonPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    lesson_id: str = Field(alias="lessonId", min_length=1)
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    content: str = Field(min_length=1)
    difficulty: str | None = None
    topics: list[str] = Field(default_factory=list)
    estimated_duration: str | int | None = Field(default=None, alias="estimatedDuration")

    def to_lesson(self, level: str) -> Lesson:
        duration = self.estimated_duration
        return Lesson(
            lesson_id=self.lesson_id,
            title=self.title,
            description=self.description,
            content=self.content,
            level=level,
            difficulty=self.difficulty,
            topics=list(self.topics),
            estimated_duration=str(duration) if duration is not None else None,
        )


class LearningPathPayload(BaseModel):
    subject: str = Field(min_length=1)
    lessons: list[LessonPayload]

    @model_validator(mode="after")
    def _unique_lesson_ids(self) -> LearningPathPayload:
        ids = [lesson.lesson_id for lesson in self.lessons]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate lessonId")
        return self


class EvaluationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    level: Literal["beginner", "intermediate", "advanced"]
    reasoning: str = ""
    weak_areas: list[str] = Field(default_factory=list, alias="weakAreas")


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class GeneratedPath:
    """A freshly generated, validated lesson sequence."""

    subject: str
    lessons: list[Lesson]


@dataclass
class LevelEvaluation:
    """Model's judgement of a diagnostic attempt."""

    level: str
    reasoning: str = ""
    weak_areas: list[str] = field(default_factory=list)


PayloadT = TypeVar("PayloadT", bound=BaseModel)


def difficulty_for_level(level: str | None) -> str:
    """Map a learner level to the difficulty wording used in prompts."""
    return DIFFICULTY_MAP.get(level or "", "moderate")


# =============================================================================
# GENERATOR
# =============================================================================


class ContentGenerator:
    """Builds tests and lesson paths from LLM output.

    Every public method either returns fully validated domain objects or
    raises GenerationError.
    """

    def __init__(
        self,
        client: LLMClient | None = None,
        learning: LearningConfig | None = None,
        configured: bool = True,
        max_retries: int = 1,
    ):
        self._client = client
        self.learning = learning or LearningConfig()
        self.configured = configured
        self.max_retries = max_retries

    @classmethod
    def from_app_config(cls, app_config: AppConfig | None = None) -> ContentGenerator:
        """Create a generator wired to the configured AI provider."""
        if app_config is None:
            app_config = load_app_config()

        configured = check_ai_credentials(app_config)
        client = LLMClient(config=LLMConfig.from_app_config(app_config))
        return cls(
            client=client,
            learning=app_config.learning,
            configured=configured,
            max_retries=app_config.ai.max_retries,
        )

    @property
    def subject(self) -> str:
        return self.learning.subject

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _request(self, operation: str, user_prompt: str) -> dict[str, Any]:
        if not self.configured or self._client is None:
            logger.error("generation_unconfigured", operation=operation)
            raise GenerationError("AI service not configured")

        system_prompt = SYSTEM_PROMPT_JSON.format(subject=self.subject)
        try:
            raw = self._client.simple_json(
                system_prompt,
                user_prompt,
                max_retries=self.max_retries,
            )
        except LLMError as e:
            logger.error("generation_failed", operation=operation, error=str(e))
            raise GenerationError(f"{operation}: {e}") from e

        if not isinstance(raw, dict):
            raise GenerationError(f"{operation}: expected a JSON object")
        return raw

    def _validate(self, operation: str, schema: type[PayloadT], raw: dict[str, Any]) -> PayloadT:
        try:
            return schema.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(
                "generation_payload_invalid",
                operation=operation,
                errors=e.error_count(),
            )
            raise GenerationError(f"{operation}: malformed payload ({e.error_count()} errors)") from e

    def _question_set(self, operation: str, user_prompt: str, expected: int) -> list[TestQuestion]:
        raw = self._request(operation, user_prompt)
        payload = self._validate(operation, QuestionSetPayload, raw)

        if len(payload.questions) != expected:
            raise GenerationError(
                f"{operation}: expected {expected} questions, got {len(payload.questions)}"
            )

        questions = [q.to_question() for q in payload.questions]
        logger.info("questions_generated", operation=operation, count=len(questions))
        return questions

    # -------------------------------------------------------------------------
    # Tests
    # -------------------------------------------------------------------------

    def generate_diagnostic_test(self) -> list[TestQuestion]:
        """First test a new learner takes; seeds the initial level."""
        n = self.learning.placement_test_size
        prompt = USER_PROMPT_DIAGNOSTIC.format(
            n=n,
            subject=self.subject,
            question_format=QUESTION_FORMAT.format(level_field=""),
        )
        return self._question_set("diagnostic_test", prompt, n)

    def generate_level_based_test(self, level: str | None) -> list[TestQuestion]:
        """Regular test pitched at the learner's current level."""
        n = self.learning.placement_test_size
        prompt = USER_PROMPT_LEVEL_TEST.format(
            n=n,
            difficulty=difficulty_for_level(level),
            level=level or "intermediate",
            subject=self.subject,
            question_format=QUESTION_FORMAT.format(level_field=""),
        )
        return self._question_set("level_based_test", prompt, n)

    def generate_mock_test(self) -> list[TestQuestion]:
        """Band-scored test: exactly band_size questions per band."""
        band_size = self.learning.mock_band_size
        total = band_size * 3
        prompt = USER_PROMPT_MOCK.format(
            total=total,
            band_size=band_size,
            subject=self.subject,
            question_format=QUESTION_FORMAT.format(
                level_field=',\n      "level": "easy | medium | advanced"'
            ),
        )

        raw = self._request("mock_test", prompt)
        payload = self._validate("mock_test", MockQuestionSetPayload, raw)

        if len(payload.questions) != total:
            raise GenerationError(
                f"mock_test: expected {total} questions, got {len(payload.questions)}"
            )

        for band in ("easy", "medium", "advanced"):
            count = sum(1 for q in payload.questions if q.level == band)
            if count != band_size:
                raise GenerationError(
                    f"mock_test: expected {band_size} {band} questions, got {count}"
                )

        questions = [q.to_question() for q in payload.questions]
        logger.info("questions_generated", operation="mock_test", count=len(questions))
        return questions

    def generate_lesson_test(self, lesson_id: str, title: str, level: str | None) -> list[TestQuestion]:
        """Short test gating completion of one lesson."""
        n = self.learning.lesson_test_size
        prompt = USER_PROMPT_LESSON_TEST.format(
            n=n,
            lesson_id=lesson_id,
            title=title,
            level=level or "easy",
            subject=self.subject,
            question_format=QUESTION_FORMAT.format(level_field=""),
        )
        return self._question_set("lesson_test", prompt, n)

    # -------------------------------------------------------------------------
    # Learning paths
    # -------------------------------------------------------------------------

    def generate_learning_path(self, level: str, weak_areas: list[str] | None = None) -> GeneratedPath:
        """Generate an ordered lesson sequence for a level."""
        weak_areas_line = ""
        if weak_areas:
            weak_areas_line = f"Give extra attention to these weak areas: {', '.join(weak_areas)}."

        prompt = USER_PROMPT_LEARNING_PATH.format(
            subject=self.subject,
            level=level,
            weak_areas_line=weak_areas_line,
            min_lessons=self.learning.min_path_lessons,
            max_lessons=self.learning.max_path_lessons,
        )

        raw = self._request("learning_path", prompt)
        payload = self._validate("learning_path", LearningPathPayload, raw)

        count = len(payload.lessons)
        if not self.learning.min_path_lessons <= count <= self.learning.max_path_lessons:
            raise GenerationError(
                f"learning_path: expected {self.learning.min_path_lessons}-"
                f"{self.learning.max_path_lessons} lessons, got {count}"
            )

        lessons = [lesson.to_lesson(level) for lesson in payload.lessons]
        logger.info("learning_path_generated", level=level, lessons=count)
        return GeneratedPath(subject=payload.subject, lessons=lessons)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate_student_level(self, questions: list[AnsweredQuestion], score: int) -> LevelEvaluation:
        """Ask the model to judge an answered test; returns level and weak areas."""
        answers = "\n".join(
            f"{i}. {q.question}\n"
            f"Correct Answer: {q.correct_answer}\n"
            f"Student Answer: {q.student_answer or 'Not answered'}\n"
            f"Correct: {'Yes' if q.is_correct else 'No'}"
            for i, q in enumerate(questions, 1)
        )
        prompt = USER_PROMPT_EVALUATE.format(
            max_weak=MAX_WEAK_AREAS,
            score=score,
            total=len(questions),
            answers=answers,
        )

        raw = self._request("evaluate_level", prompt)
        payload = self._validate("evaluate_level", EvaluationPayload, raw)

        weak_areas = [area.strip() for area in payload.weak_areas if area.strip()]
        return LevelEvaluation(
            level=payload.level,
            reasoning=payload.reasoning,
            weak_areas=weak_areas[:MAX_WEAK_AREAS],
        )
