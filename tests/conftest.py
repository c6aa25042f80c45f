"""Shared fixtures: canned LLM payloads, a routed mock client and an isolated database."""

from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from learnpath.config.app_config import LearningConfig, clear_config_cache
from learnpath.core.content_generator import ContentGenerator
from learnpath.core.live_updates import ChangeFeed, reset_change_feed
from learnpath.core.models import AnsweredQuestion, Lesson, TestQuestion
from learnpath.core.session import LearningService, reset_learning_service
from learnpath.db.database import init_db
from learnpath.web.sessions import reset_test_sessions


# =============================================================================
# PAYLOAD FACTORIES
# =============================================================================


def _question(i: int, level: str | None = None) -> dict[str, Any]:
    item: dict[str, Any] = {
        "question": f"Question {i}?",
        "options": [f"A{i}", f"B{i}", f"C{i}", f"D{i}"],
        "correctAnswer": f"A{i}",
    }
    if level is not None:
        item["level"] = level
    return item


@pytest.fixture
def question_set_payload() -> Callable[[int], dict[str, Any]]:
    """Factory: {"questions": [...]} with n valid questions (answer A<i>)."""

    def build(n: int) -> dict[str, Any]:
        return {"questions": [_question(i) for i in range(1, n + 1)]}

    return build


@pytest.fixture
def mock_test_payload() -> dict[str, Any]:
    """15 questions: 1-5 easy, 6-10 medium, 11-15 advanced."""
    questions = []
    for band_index, band in enumerate(("easy", "medium", "advanced")):
        for j in range(1, 6):
            questions.append(_question(band_index * 5 + j, level=band))
    return {"questions": questions}


@pytest.fixture
def path_payload() -> Callable[[int], dict[str, Any]]:
    """Factory: learning path with n lessons lesson-1..lesson-n."""

    def build(n: int = 6) -> dict[str, Any]:
        return {
            "subject": "Python",
            "lessons": [
                {
                    "lessonId": f"lesson-{i}",
                    "title": f"Lesson {i}",
                    "description": f"About topic {i}",
                    "content": f"Content of lesson {i}",
                    "difficulty": "easy",
                    "topics": [f"topic {i}"],
                    "estimatedDuration": "20 minutes",
                }
                for i in range(1, n + 1)
            ],
        }

    return build


@pytest.fixture
def evaluation_payload() -> dict[str, Any]:
    return {
        "level": "intermediate",
        "reasoning": "Mixed results",
        "weakAreas": ["loops", "functions"],
    }


# =============================================================================
# MOCK LLM CLIENT
# =============================================================================


@pytest.fixture
def mock_llm_client(question_set_payload, mock_test_payload, path_payload, evaluation_payload):
    """Mock LLM client that answers each prompt kind with a valid payload.

    Tests can override client.responses[kind] to inject malformed output or
    an exception instance to raise.
    """
    client = MagicMock()
    client.config = MagicMock()
    client.config.provider = "gemini"
    client.config.model = "test-model"

    client.responses = {
        "mock": mock_test_payload,
        "path": path_payload(6),
        "lesson_test": question_set_payload(5),
        "diagnostic": question_set_payload(10),
        "level_test": question_set_payload(10),
        "evaluate": evaluation_payload,
    }

    def route(system_prompt: str, user_prompt: str, **kwargs):
        if "mock test" in user_prompt:
            kind = "mock"
        elif "learning path" in user_prompt:
            kind = "path"
        elif "checking the lesson" in user_prompt:
            kind = "lesson_test"
        elif "diagnostic test" in user_prompt:
            kind = "diagnostic"
        elif "level test" in user_prompt:
            kind = "level_test"
        else:
            kind = "evaluate"

        response = client.responses[kind]
        if isinstance(response, Exception):
            raise response
        return response

    client.simple_json.side_effect = route
    return client


@pytest.fixture
def generator(mock_llm_client) -> ContentGenerator:
    return ContentGenerator(client=mock_llm_client, learning=LearningConfig())


# =============================================================================
# STORE AND SERVICES
# =============================================================================


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database under tmp_path."""
    db_path = tmp_path / "db" / "learnpath.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def service(db, generator, feed) -> LearningService:
    return LearningService(generator=generator, feed=feed)


@pytest.fixture(autouse=True)
def reset_globals():
    """Isolate module-level singletons between tests."""
    clear_config_cache()
    reset_change_feed()
    reset_learning_service()
    reset_test_sessions()
    yield
    clear_config_cache()
    reset_change_feed()
    reset_learning_service()
    reset_test_sessions()


# =============================================================================
# DOMAIN HELPERS
# =============================================================================


@pytest.fixture
def make_answered() -> Callable[..., list[AnsweredQuestion]]:
    """Factory: answered questions with the given correctness per band."""

    def build(correct: list[bool], level: str | None = None) -> list[AnsweredQuestion]:
        answered = []
        for i, ok in enumerate(correct, 1):
            question = TestQuestion(
                question=f"Q{i}",
                options=("right", "w1", "w2", "w3"),
                correct_answer="right",
                level=level,
            )
            answered.append(question.answer("right" if ok else "w1"))
        return answered

    return build


@pytest.fixture
def make_lessons() -> Callable[[int], list[Lesson]]:
    def build(n: int) -> list[Lesson]:
        return [
            Lesson(
                lesson_id=f"lesson-{i}",
                title=f"Lesson {i}",
                description=f"About {i}",
                content=f"Body {i}",
            )
            for i in range(1, n + 1)
        ]

    return build
