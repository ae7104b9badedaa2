"""Shared pytest fixtures for the Digger test suite.

Provides:
- db_engine: fresh in-memory SQLite async engine with all tables
- session_factory: sessionmaker bound to db_engine (lock coordinator style)
- db_session: plain session for repository tests
- coordinator: LockCoordinator on the in-memory store
- ci_service: FakeCIService recording comments and serving canned data
- client: AsyncClient against the API with DB and settings overridden
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.db.session import Base
import src.db.tables  # noqa: F401  (registers ORM models on Base.metadata)
from src.errors import CIServiceError
from src.locking.coordinator import LockCoordinator

API_TOKEN = "test-api-token"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# CI fake
# ---------------------------------------------------------------------------


class FakeCIService:
    """In-memory CIService: canned files/teams, recorded comments."""

    def __init__(
        self,
        *,
        changed_files: list[str] | None = None,
        teams: dict[str, list[str]] | None = None,
        fail_teams: bool = False,
        fail_comments: bool = False,
    ) -> None:
        self.changed_files = changed_files or []
        self.teams = teams or {}
        self.fail_teams = fail_teams
        self.fail_comments = fail_comments
        self.comments: list[tuple[int, str]] = []
        self.team_lookups: list[tuple[str, str]] = []

    async def get_changed_files(self, mr_id: int) -> list[str]:
        return list(self.changed_files)

    async def publish_comment(self, mr_id: int, comment: str) -> None:
        if self.fail_comments:
            raise CIServiceError("notes endpoint unavailable")
        self.comments.append((mr_id, comment))

    async def get_user_teams(self, organisation: str, user: str) -> list[str]:
        self.team_lookups.append((organisation, user))
        if self.fail_teams:
            raise CIServiceError("GitLab GET /users returned HTTP 502")
        return list(self.teams.get(user, []))


@pytest.fixture
def ci_service() -> FakeCIService:
    return FakeCIService()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def coordinator(session_factory) -> LockCoordinator:
    return LockCoordinator(session_factory)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(session_factory):
    """AsyncClient with DB sessions and settings overridden for tests."""
    from src.api.main import app
    from src.config.settings import Settings, get_settings
    from src.db.session import get_async_session, get_session_factory

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: Settings(API_TOKEN=API_TOKEN)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {API_TOKEN}"},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
