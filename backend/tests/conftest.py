"""Shared test fixtures for gitTogether backend."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from api.deps import get_github_service
from app.config import Environment, Settings
from app.dependencies import get_optional_profile_store, get_profile_store, get_redis
from app.main import create_app
from services.models import CandidateIssue, LanguageShare
from services.profile_store import AuthUser


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment=Environment.TESTING,
        debug=True,
        redis_url="redis://localhost:6379/15",
        github_token=SecretStr("ghp_test_token_fake_value"),
        github_max_retries=0,
        source_repositories=["octo/widgets"],
        cors_origins=["http://localhost:3000"],
    )


@pytest.fixture
async def fake_redis() -> AsyncGenerator:
    """Provide a fake Redis instance for testing."""
    server = fakeredis.FakeServer()
    redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    yield redis
    await redis.aclose()


@pytest.fixture
def mock_store():
    """Provide a mocked Supabase profile store."""
    store = AsyncMock()
    store.verify_token.return_value = AuthUser(id="user-1", email="viewer@example.com")
    store.get_profile.return_value = {
        "id": "user-1",
        "username": "viewer",
        "email": "viewer@example.com",
        "preferences": ["python", "cli"],
        "mentor_status": False,
        "email_notifications": True,
    }
    store.list_mentors.return_value = []
    return store


@pytest.fixture
def mock_github_service():
    """Provide a mocked GitHub service."""
    service = AsyncMock()
    service.get_language_affinity.return_value = [
        LanguageShare("Python", 70.0),
        LanguageShare("Go", 30.0),
    ]
    service.fetch_candidate_issues.return_value = [
        CandidateIssue(
            repository_owner="octo",
            repository_name="widgets",
            issue_number=7,
            issue_title="Fix typo in README",
            issue_id=1007,
            primary_language="Python",
            all_languages=["Python", "Shell"],
            repository_topics=["python", "cli"],
            issue_labels=["good first issue"],
            date_created=(datetime.now(UTC) - timedelta(days=7)).strftime("%Y-%m-%dT%H:%M:%SZ"),
            days_open=7,
        ),
    ]
    service.get_user.return_value = {
        "login": "viewer",
        "public_repos": 3,
        "followers": 1,
        "created_at": "2025-01-01T00:00:00Z",
    }
    service.get_owned_repos.return_value = []
    return service


@pytest.fixture
async def app(fake_redis, mock_store, mock_github_service):
    """Create a test application instance with external services replaced."""
    application = create_app()

    async def _redis_override():
        yield fake_redis

    application.dependency_overrides[get_redis] = _redis_override
    application.dependency_overrides[get_profile_store] = lambda: mock_store
    application.dependency_overrides[get_optional_profile_store] = lambda: mock_store
    application.dependency_overrides[get_github_service] = lambda: mock_github_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator:
    """Provide an async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-access-token"}
