"""Shared test fixtures for pytest.

We set env defaults early so importing modules that instantiate settings
(``dependencies.db``, ``main``) succeeds without an external .env file.
"""

import os
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


TEST_API_KEY = "test-api-key-0123456789"

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ENVIRONMENT"] = "test"
os.environ["SQLITE_PATH"] = ":memory:"
os.environ["MCP_API_KEYS"] = TEST_API_KEY
os.environ["ALLOWED_DOMAINS"] = "example.com,wikipedia.org,.edu"
os.environ["CRON_ENABLED"] = "false"
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)

from dependencies.db import create_engine_for, get_db, init_models  # noqa: E402
from main import app  # noqa: E402
from services.safe_fetch import SafeFetcher  # noqa: E402
from services.url_safety import FetchPolicy  # noqa: E402


@pytest.fixture
def policy() -> FetchPolicy:
    """Small limits so size and time bounds are cheap to exercise."""
    return FetchPolicy(
        allowed_domains=("example.com", "wikipedia.org", ".edu"),
        fetch_timeout_ms=2000,
        max_fetch_bytes=1024,
        max_redirects=3,
    )


@pytest.fixture
def make_fetcher(
    policy: FetchPolicy,
) -> Callable[..., SafeFetcher]:
    """Build a SafeFetcher over an httpx MockTransport.

    ``handler`` receives the ``httpx.Request`` and returns an
    ``httpx.Response`` (sync or async). Keyword overrides replace policy
    fields.
    """

    def _make(handler, **overrides) -> SafeFetcher:
        fields = {
            "allowed_domains": policy.allowed_domains,
            "fetch_timeout_ms": policy.fetch_timeout_ms,
            "max_fetch_bytes": policy.max_fetch_bytes,
            "max_redirects": policy.max_redirects,
            "resolve_dns": policy.resolve_dns,
            "user_agent": policy.user_agent,
        }
        fields.update(overrides)
        return SafeFetcher(
            FetchPolicy(**fields), transport=httpx.MockTransport(handler)
        )

    return _make


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    await init_models(bind=engine)
    session_factory = async_sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession
    )
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_API_KEY}"}


@pytest_asyncio.fixture
async def async_client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to the per-test database; overrides are reset after."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
