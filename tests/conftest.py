"""Shared pytest fixtures for unit and integration tests."""

import os
import uuid
import pytest

# Load .env so DATABASE_URL, SECRET_KEY available for requires_db check
from dotenv import load_dotenv
load_dotenv()

# Many requests share one client address
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from httpx import ASGITransport, AsyncClient

from school_enrollment.main import app
from school_enrollment.config import settings
from school_enrollment.core.security import create_access_token

# Skip integration tests if DATABASE_URL or SECRET_KEY not set
requires_db = pytest.mark.skipif(
    not os.getenv("DATABASE_URL") or not os.getenv("SECRET_KEY"),
    reason="DATABASE_URL and SECRET_KEY must be set",
)


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
async def async_client(api_base: str):
    """Async HTTP client against the in-process app."""
    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url=api_base, timeout=30.0)
    yield client
    await client.aclose()


@pytest.fixture
def unique_suffix() -> str:
    """Unique suffix for test data to avoid collisions."""
    return str(uuid.uuid4())[:8]


def auth_headers(roles=()) -> dict:
    token = create_access_token(str(uuid.uuid4()), roles=roles)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def clerk_headers() -> dict:
    """Registrar without approval rights."""
    return auth_headers(roles=["registrar"])


@pytest.fixture
def director_headers() -> dict:
    """Actor allowed to approve and reject."""
    return auth_headers(roles=[settings.APPROVER_ROLES[0]])
