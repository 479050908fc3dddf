# tests/conftest.py
import asyncio
import os
import tempfile

# Settings and the engine are created at import time, so the test database
# must be configured before anything from `app` is imported.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="family-organizer-tests-")
os.environ["APP_ENV"] = "test"
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ.pop("INTERNAL_API_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db.session import init_db  # noqa: E402
from app.main import create_app  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for all tests.

    Uses the application factory so dependency overrides stay per-app.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_db():
    """
    Every test starts from an empty schema.
    """
    # A private loop, so the loop pytest-asyncio installs for async tests is
    # left alone.
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(init_db())
    finally:
        loop.close()
    yield

