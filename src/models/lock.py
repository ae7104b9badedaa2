"""Lock models — the unit of mutual exclusion for mutating commands."""

from pydantic import Field

from src.models.common import DiggerBase, UTCTimestamp, utc_now
from src.models.project import DEFAULT_WORKSPACE


class LockKey(DiggerBase):
    """(namespace, repository, project, workspace) tuple identifying a lock."""

    model_config = {"frozen": True, "populate_by_name": True}

    namespace: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)
    project: str = Field(..., min_length=1)
    workspace: str = Field(default=DEFAULT_WORKSPACE, min_length=1)

    @property
    def resource(self) -> str:
        """Human-readable resource id, e.g. ``group/repo#network:default``."""
        return f"{self.namespace}/{self.repository}#{self.project}:{self.workspace}"

    def __str__(self) -> str:
        return self.resource


class LockHolder(DiggerBase):
    """Who holds a lock: the merge request and the user who asked for it.

    Ownership is decided by the merge request; any user acting on the same
    merge request may release its lock.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    pr_number: int
    requested_by: str = ""

    def owns(self, other: "LockHolder") -> bool:
        return self.pr_number == other.pr_number


class Lock(DiggerBase):
    """An unreleased lock as recorded in the coordination store."""

    key: LockKey
    holder: LockHolder
    acquired_at: UTCTimestamp = Field(default_factory=utc_now)
