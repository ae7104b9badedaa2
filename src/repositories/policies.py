"""Access policy repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import AccessPolicyRow
from src.models.common import new_uuid7, utc_now


class AccessPolicyRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_scope(self, organisation: str, namespace: str,
                         project: str) -> AccessPolicyRow | None:
        result = await self._session.execute(
            select(AccessPolicyRow).where(
                AccessPolicyRow.organisation == organisation,
                AccessPolicyRow.namespace == namespace,
                AccessPolicyRow.project == project,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert(self, *, organisation: str, namespace: str, project: str,
                      policy: str) -> AccessPolicyRow:
        row = await self._get_scope(organisation, namespace, project)
        now = utc_now()
        if row is None:
            row = AccessPolicyRow(
                policy_id=new_uuid7(), organisation=organisation,
                namespace=namespace, project=project, policy=policy,
                created_at=now, updated_at=now,
            )
            self._session.add(row)
        else:
            row.policy = policy
            row.updated_at = now
        await self._session.flush()
        return row

    async def get_for_organisation(self, organisation: str) -> AccessPolicyRow | None:
        return await self._get_scope(organisation, "", "")

    async def get_for_project(self, namespace: str, project: str) -> AccessPolicyRow | None:
        return await self._get_scope("", namespace, project)

    async def set_for_organisation(self, organisation: str, policy: str) -> AccessPolicyRow:
        return await self._upsert(
            organisation=organisation, namespace="", project="", policy=policy,
        )

    async def set_for_project(self, namespace: str, project: str,
                              policy: str) -> AccessPolicyRow:
        return await self._upsert(
            organisation="", namespace=namespace, project=project, policy=policy,
        )
