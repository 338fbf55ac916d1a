import os

# Hashing cost only matters in production; keep the suite fast.
os.environ.setdefault("DEDOVBET_ARGON2_ITERATIONS", "1")
os.environ.setdefault("DEDOVBET_ARGON2_MEMORY_KIB", "64")
os.environ.setdefault("DEDOVBET_ARGON2_LANES", "1")

import pytest
from fastapi.testclient import TestClient

from ..core.store import UserFile, get_user_file, set_user_file
from ..main import app
from ..services import LedgerSession, SessionCache, StoreClient


@pytest.fixture
def users_path(tmp_path):
    return tmp_path / "users.json"


@pytest.fixture
def client(users_path) -> TestClient:
    original_file = get_user_file()
    set_user_file(UserFile(users_path))

    with TestClient(app) as test_client:
        yield test_client

    set_user_file(original_file)


@pytest.fixture
def cache() -> SessionCache:
    return SessionCache()


@pytest.fixture
def session(client: TestClient, cache: SessionCache) -> LedgerSession:
    return LedgerSession(StoreClient(client), cache=cache)


@pytest.fixture
def player(session: LedgerSession) -> LedgerSession:
    result = session.register("alice", "alice@example.com", "secret123")
    assert result.success, result.error
    return session


def register(client: TestClient, username: str, email: str | None = None, **extra) -> dict:
    body = {
        "username": username,
        "email": email or f"{username}@example.com",
        "password": "secret123",
        **extra,
    }
    response = client.post("/api/register", json=body)
    assert response.status_code == 200, response.text
    return response.json()["user"]
