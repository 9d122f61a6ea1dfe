"""Pytest fixtures for the task management API tests."""

from collections.abc import Callable, Generator
from typing import Any

import mongomock
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.database import Database

from config import Settings
from main import create_app


@pytest.fixture
def test_settings() -> Settings:
    """Settings that never touch the process environment's values."""
    return Settings(
        mongodb_uri="mongodb://localhost:27017/task_manager_test",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        rate_limit_max_requests=10_000,
        log_level="WARNING",
        log_format="console",
        frontend_url="http://localhost:3000",
    )


@pytest.fixture
def db() -> Database:
    """In-memory MongoDB database."""
    return mongomock.MongoClient()["task_manager_test"]


@pytest.fixture
def app(test_settings: Settings, db: Database) -> FastAPI:
    return create_app(test_settings, db)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_user(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Register a user through the API and return the response body."""

    def _register(username: str, password: str = "secret123", **extra: Any) -> dict[str, Any]:
        payload = {
            "username": username,
            "email": f"{username}@acme.io",
            "password": password,
            "firstName": username.capitalize(),
            "lastName": "Tester",
            **extra,
        }
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _register


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(register_user: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return register_user("alice")


@pytest.fixture
def alice_headers(alice: dict[str, Any]) -> dict[str, str]:
    return bearer(alice["token"])


@pytest.fixture
def bob(register_user: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return register_user("bob")


@pytest.fixture
def bob_headers(bob: dict[str, Any]) -> dict[str, str]:
    return bearer(bob["token"])
