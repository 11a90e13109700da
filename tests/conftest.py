"""Pytest configuration and fixtures for the guard demo tests."""

import re
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app

CSRF_TOKEN_PATTERN = re.compile(r'name="csrfToken" value="([0-9a-f]{64})"')


@pytest.fixture
def test_settings() -> Settings:
    """Settings with DEBUG on so the session cookie is sent over plain http."""
    return Settings(DEBUG=True)


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def other_client(app):
    """A second browser with its own session."""
    with TestClient(app) as c:
        yield c


def fetch_csrf_token(client: TestClient) -> Optional[str]:
    """Load the protected page and pull the token from its hidden form field."""
    response = client.get("/protected")
    assert response.status_code == 200
    match = CSRF_TOKEN_PATTERN.search(response.text)
    return match.group(1) if match else None


@pytest.fixture
def csrf_token(client) -> str:
    token = fetch_csrf_token(client)
    assert token is not None
    return token
