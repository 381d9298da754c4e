import os
import tempfile
from types import SimpleNamespace

# app.main builds an app at import time: keep it away from the working directory
_IMPORT_DIR = tempfile.mkdtemp(prefix="bookqa-import-")
os.environ.setdefault("STORAGE_PATH", os.path.join(_IMPORT_DIR, "storage"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_IMPORT_DIR, 'import.db')}")

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.deps import get_metadata_extractor
from app.main import create_app
from app.services.metadata_extractor import MetadataExtractor

API_KEY_HEADER = {"x-api-key": "change_me"}


class FakeCompletions:
    """Stand-in for ``client.chat.completions``: replays canned replies and records calls."""

    def __init__(self, content='{"grade": 5, "subject": "Science", "semester": "02"}'):
        self.content = content
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_fake_client(content='{"grade": 5, "subject": "Science", "semester": "02"}'):
    completions = FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    """
    Isolated storage root and SQLite file per test; settings cache cleared.
    """
    storage = tmp_path / "storage"
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_NAME", "School Book QA API (tests)")
    monkeypatch.setenv("STORAGE_PATH", str(storage))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("BOOKS_MAX_MB", "2")  # small limit for tests
    monkeypatch.setenv("CORS_ORIGINS", "*")
    monkeypatch.setenv("API_KEY", "change_me")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("METADATA_STRICT_PARSE", raising=False)

    get_settings.cache_clear()
    yield storage
    get_settings.cache_clear()


@pytest.fixture
def fake_llm():
    client, completions = make_fake_client()
    return SimpleNamespace(client=client, completions=completions)


@pytest.fixture
def app(settings_env, fake_llm):
    application = create_app()
    application.dependency_overrides[get_metadata_extractor] = lambda: MetadataExtractor(client=fake_llm.client)
    return application


@pytest.fixture
def test_client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def db_session(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def books_dir(settings_env, test_client):
    # buckets are created by the first request that needs storage
    path = settings_env / "books"
    path.mkdir(parents=True, exist_ok=True)
    return path


def fake_pdf_bytes() -> bytes:
    # not parseable: text extraction falls back to the file name
    return b"%PDF-1.4\n%EOF\n"
