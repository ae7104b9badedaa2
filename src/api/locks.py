"""Lock inspection endpoints.

GET    /v1/locks                                               — list held locks
DELETE /v1/locks/{namespace}/{repository}/{project}/{workspace} — force release
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.api.dependencies import get_lock_coordinator, require_bearer_token
from src.locking.coordinator import LockCoordinator
from src.models.lock import Lock, LockKey

router = APIRouter(
    prefix="/v1/locks",
    tags=["locks"],
    dependencies=[Depends(require_bearer_token)],
)


class LockListResponse(BaseModel):
    items: list[Lock]
    total: int


@router.get("", response_model=LockListResponse)
async def list_locks(
    coordinator: LockCoordinator = Depends(get_lock_coordinator),
) -> LockListResponse:
    locks = await coordinator.list_locks()
    return LockListResponse(items=locks, total=len(locks))


@router.delete("/{namespace}/{repository}/{project}/{workspace}", status_code=204)
async def force_release_lock(
    namespace: str,
    repository: str,
    project: str,
    workspace: str,
    coordinator: LockCoordinator = Depends(get_lock_coordinator),
) -> None:
    key = LockKey(
        namespace=namespace, repository=repository, project=project, workspace=workspace,
    )
    if not await coordinator.force_release(key):
        raise HTTPException(status_code=404, detail=f"No lock held for {key}")
