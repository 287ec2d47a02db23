"""Common test fixtures for the notes backend."""
import pytest
from fastapi.testclient import TestClient

from src.api import core
from src.api.main import app
from src.config import settings
from src.db.db import dispose_engine, init_db
from src.db.repository import UserRepository


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Cheap hashing and fresh service singletons for every test."""
    monkeypatch.setattr(settings, "hash_iterations", 1000)
    monkeypatch.setattr(settings, "hash_key_length", 64)
    monkeypatch.setattr(settings, "jwt_secret_key", "test-secret")
    core.get_note_service.cache_clear()
    core.get_auth_service.cache_clear()
    yield settings
    core.get_note_service.cache_clear()
    core.get_auth_service.cache_clear()


@pytest.fixture
def database(tmp_path, monkeypatch):
    """A fresh SQLite database file with the schema created."""
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path / 'notes.db'}")
    dispose_engine()
    init_db()
    yield
    dispose_engine()


@pytest.fixture
def client(database):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_id(database):
    """Id of a stored user, for repository-level tests."""
    return UserRepository().insert(
        email="test@mail.com", password_hash="digest", salt="salt", name="test", lastname="test"
    )


@pytest.fixture
def other_user_id(database):
    return UserRepository().insert(
        email="other@mail.com", password_hash="digest", salt="salt", name="other", lastname="other"
    )
