"""CI / source-control collaborator contract."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CIService(Protocol):
    """Minimal surface the control path needs from the CI platform."""

    async def get_changed_files(self, mr_id: int) -> list[str]:
        ...

    async def publish_comment(self, mr_id: int, comment: str) -> None:
        ...

    async def get_user_teams(self, organisation: str, user: str) -> list[str]:
        ...
