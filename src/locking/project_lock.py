"""Per-project lock handle that reports lock changes on the merge request.

Comments are notifications only: a failure to publish one is logged and
never changes the lock result.
"""

import logging

from src.ci.base import CIService
from src.errors import CIServiceError
from src.locking.coordinator import LockCoordinator
from src.models.lock import LockHolder, LockKey

logger = logging.getLogger(__name__)


class ProjectLock:
    """Lock one project workspace on behalf of a merge request."""

    def __init__(
        self,
        *,
        coordinator: LockCoordinator,
        ci_service: CIService,
        key: LockKey,
    ) -> None:
        self.coordinator = coordinator
        self.ci_service = ci_service
        self.key = key

    @property
    def resource(self) -> str:
        return f"{self.key.namespace}/{self.key.repository}#{self.key.project}"

    async def _notify(self, pr_number: int, text: str) -> None:
        try:
            await self.ci_service.publish_comment(pr_number, text)
        except CIServiceError as exc:
            logger.warning("Could not publish lock comment on MR #%d: %s", pr_number, exc)

    async def held_by(self, pr_number: int) -> bool:
        current = await self.coordinator.get_lock(self.key)
        return current is not None and current.holder.pr_number == pr_number

    async def lock(self, pr_number: int, requested_by: str = "") -> bool:
        holder = LockHolder(pr_number=pr_number, requested_by=requested_by)
        already_held = await self.held_by(pr_number)
        if await self.coordinator.acquire(self.key, holder):
            if not already_held:
                await self._notify(
                    pr_number, f"Project {self.resource} has been locked by MR #{pr_number}",
                )
            return True

        current = await self.coordinator.get_lock(self.key)
        holder_ref = f"MR #{current.holder.pr_number}" if current else "another MR"
        await self._notify(
            pr_number,
            f"Project {self.resource} locked by {holder_ref} (failed to acquire lock). "
            "The locking plan must be applied or discarded before future plans can execute",
        )
        return False

    async def unlock(self, pr_number: int, requested_by: str = "") -> bool:
        released = await self.release_silently(pr_number, requested_by)
        if released:
            await self._notify(pr_number, f"Project unlocked ({self.resource}).")
        return released

    async def release_silently(self, pr_number: int, requested_by: str = "") -> bool:
        holder = LockHolder(pr_number=pr_number, requested_by=requested_by)
        return await self.coordinator.release(self.key, holder)
