"""Pytest setup shared by every backend test run.

Lives at the backend/ root so it is loaded before any test module imports
`draftio`, which lets it steer settings that are read at import time.
"""
import os
import tempfile

import pytest

# Keep test runs away from the developer's real database and state directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CLIENT_STATE_DIR", os.path.join(tempfile.gettempdir(), "draftio-test-state"))

from draftio.core.config import settings


@pytest.fixture(scope="session", autouse=True)
def force_testing_mode():
    """Force TESTING=True early in the test session so imports can read it."""
    settings.TESTING = True


def pytest_collection_modifyitems(items):
    """Treat legacy pytest.mark.asyncio as anyio so those tests run under the anyio plugin."""
    for item in items:
        if 'asyncio' in getattr(item, 'keywords', {}):
            item.add_marker(pytest.mark.anyio)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"
