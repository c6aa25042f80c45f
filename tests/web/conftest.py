"""Fixtures for Web API tests."""

import pytest
from fastapi.testclient import TestClient

from learnpath.core.session import set_learning_service
from learnpath.web.api import create_app


@pytest.fixture
def client(tmp_path, monkeypatch, db, service):
    """Test client over an isolated database and a mocked generator."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LEARNPATH_DB_PATH", str(db))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LEARNPATH_PROVIDER", raising=False)
    set_learning_service(service)

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register a user and return its id."""

    def _register(user_id: str, role: str = "student", full_name: str = "Test User") -> str:
        response = client.post(
            "/api/users",
            json={
                "user_id": user_id,
                "role": role,
                "full_name": full_name,
                "email": f"{user_id}@example.com",
            },
        )
        assert response.status_code == 201
        return user_id

    return _register
