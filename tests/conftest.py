"""Shared test fixtures."""

import os


# Must be set before the application (and its cached settings) is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from watchprogress.main import create_app  # noqa: E402
from watchprogress.progress.service import ProgressService  # noqa: E402
from watchprogress.progress.storage import InMemoryProgressStore  # noqa: E402


@pytest.fixture
def store() -> InMemoryProgressStore:
    """Empty in-memory progress store."""
    return InMemoryProgressStore()


@pytest.fixture
def service(store: InMemoryProgressStore) -> ProgressService:
    """Progress service over the in-memory store."""
    return ProgressService(store=store)


@pytest.fixture
def client(service: ProgressService) -> TestClient:
    """Test client with the progress service wired in (lifespan not run)."""
    app = create_app()
    app.state.progress_service = service
    return TestClient(app)
