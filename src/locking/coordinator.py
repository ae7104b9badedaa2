"""Lock coordinator — exclusive project/workspace locks in the shared store.

Acquisition is a single INSERT against the ``project_locks`` primary key, so
two overlapping pipelines racing for the same key cannot both win. Each
operation commits its own transaction; a lock is visible to every other
invocation as soon as ``acquire`` returns.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.common import utc_now
from src.models.lock import Lock, LockHolder, LockKey
from src.repositories.locks import LockRepository, row_to_lock

logger = logging.getLogger(__name__)

# Insert races against a concurrent release are retried this many times
_MAX_ACQUIRE_ATTEMPTS = 3


class LockCoordinator:
    """Acquire and release locks keyed by (namespace, repo, project, workspace)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def acquire(self, key: LockKey, holder: LockHolder) -> bool:
        """Take the lock for ``holder``.

        Returns True if the lock is now held by ``holder`` (including when the
        same merge request already held it), False if another merge request
        holds it.
        """
        for _ in range(_MAX_ACQUIRE_ATTEMPTS):
            async with self._session_factory() as session:
                repo = LockRepository(session)
                try:
                    await repo.create(key, holder, utc_now())
                    await session.commit()
                    logger.info("Lock %s acquired by MR #%d", key, holder.pr_number)
                    return True
                except IntegrityError:
                    await session.rollback()

                existing = await repo.get(key)
                if existing is None:
                    continue
                current = LockHolder(
                    pr_number=existing.pr_number, requested_by=existing.requested_by,
                )
                if current.owns(holder):
                    logger.info("Lock %s already held by MR #%d", key, holder.pr_number)
                    return True
                logger.warning(
                    "Lock %s is held by MR #%d; MR #%d cannot acquire it",
                    key, current.pr_number, holder.pr_number,
                )
                return False

        logger.warning("Lock %s churned during acquisition; giving up", key)
        return False

    async def release(self, key: LockKey, holder: LockHolder) -> bool:
        """Clear the lock if ``holder`` holds it. Returns whether it did."""
        async with self._session_factory() as session:
            released = await LockRepository(session).delete_if_held_by(key, holder.pr_number)
            await session.commit()
        if released:
            logger.info("Lock %s released by MR #%d", key, holder.pr_number)
        else:
            logger.info("Lock %s not held by MR #%d; nothing released", key, holder.pr_number)
        return released

    async def force_release(self, key: LockKey) -> bool:
        """Clear the lock regardless of holder (administrative unlock)."""
        async with self._session_factory() as session:
            released = await LockRepository(session).delete(key)
            await session.commit()
        if released:
            logger.warning("Lock %s force-released", key)
        return released

    async def get_lock(self, key: LockKey) -> Lock | None:
        async with self._session_factory() as session:
            row = await LockRepository(session).get(key)
            return row_to_lock(row) if row is not None else None

    async def list_locks(self) -> list[Lock]:
        async with self._session_factory() as session:
            rows = await LockRepository(session).list_all()
            return [row_to_lock(r) for r in rows]
