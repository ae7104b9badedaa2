"""FastAPI dependency injection factories.

Repositories take AsyncSession via Depends(get_async_session). The lock
coordinator owns its transactions and takes the session factory instead.
"""

import secrets

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.settings import Settings, get_settings
from src.db.session import get_async_session, get_session_factory
from src.locking.coordinator import LockCoordinator
from src.repositories.policies import AccessPolicyRepository

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


async def require_bearer_token(
    authorization: str = Header(default=""),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject requests without ``Authorization: Bearer <API_TOKEN>``."""
    scheme, _, token = authorization.partition(" ")
    expected = settings.API_TOKEN
    if (
        not expected
        or scheme.lower() != "bearer"
        or not secrets.compare_digest(token.encode(), expected.encode())
    ):
        raise HTTPException(status_code=401, detail="Invalid or missing bearer token")


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


async def get_policy_repo(
    session: AsyncSession = Depends(get_async_session),
) -> AccessPolicyRepository:
    return AccessPolicyRepository(session)


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------


async def get_lock_coordinator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> LockCoordinator:
    return LockCoordinator(session_factory)
