"""
Pytest configuration and shared fixtures.

Test environment variables are set here, and the settings cache is cleared,
before any app module reads them.
"""

import os
import shutil
import tempfile

import pytest

# Test database lives in a throwaway directory removed at session end
TEST_DB_DIR = tempfile.mkdtemp(prefix="inbox-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(TEST_DB_DIR, 'test_inbox.db')}")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings  # noqa: E402
get_settings.cache_clear()

from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401  (registers the messages table)
from app.main import app  # noqa: E402
from app.storage import Base, engine  # noqa: E402


VALID_CONTENT = "Hello, is this open for business?"


def pytest_sessionfinish(session, exitstatus):
    """Release pooled connections and delete the test database directory."""
    engine.dispose()
    shutil.rmtree(TEST_DB_DIR, ignore_errors=True)


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Cleanup - drop all tables and overrides after test
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


def submit_message(client, name: str = "Ana", email: str = "ana@x.com", content: str = VALID_CONTENT) -> dict:
    """Helper to create a message through the API and return its DTO."""
    response = client.post(
        "/api/mensajes",
        json={"nombre": name, "email": email, "contenido": content},
    )
    assert response.status_code == 201, response.text
    return response.json()
