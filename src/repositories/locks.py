"""Project lock repository."""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import ProjectLockRow
from src.models.lock import Lock, LockHolder, LockKey


def _identity(key: LockKey) -> tuple[str, str, str, str]:
    return (key.namespace, key.repository, key.project, key.workspace)


def _where(key: LockKey) -> tuple:
    return (
        ProjectLockRow.namespace == key.namespace,
        ProjectLockRow.repository == key.repository,
        ProjectLockRow.project == key.project,
        ProjectLockRow.workspace == key.workspace,
    )


def row_to_lock(row: ProjectLockRow) -> Lock:
    return Lock(
        key=LockKey(
            namespace=row.namespace,
            repository=row.repository,
            project=row.project,
            workspace=row.workspace,
        ),
        holder=LockHolder(pr_number=row.pr_number, requested_by=row.requested_by),
        acquired_at=row.acquired_at,
    )


class LockRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, key: LockKey, holder: LockHolder,
                     acquired_at: datetime) -> ProjectLockRow:
        """Insert a lock row. Raises IntegrityError if the key is already held."""
        row = ProjectLockRow(
            namespace=key.namespace, repository=key.repository,
            project=key.project, workspace=key.workspace,
            pr_number=holder.pr_number, requested_by=holder.requested_by,
            acquired_at=acquired_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, key: LockKey) -> ProjectLockRow | None:
        return await self._session.get(ProjectLockRow, _identity(key))

    async def list_all(self) -> list[ProjectLockRow]:
        result = await self._session.execute(
            select(ProjectLockRow).order_by(ProjectLockRow.acquired_at)
        )
        return list(result.scalars().all())

    async def delete_if_held_by(self, key: LockKey, pr_number: int) -> bool:
        result = await self._session.execute(
            delete(ProjectLockRow)
            .where(*_where(key), ProjectLockRow.pr_number == pr_number)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete(self, key: LockKey) -> bool:
        result = await self._session.execute(
            delete(ProjectLockRow)
            .where(*_where(key))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
