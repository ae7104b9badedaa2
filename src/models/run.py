"""Run result models returned by the orchestrator."""

from pydantic import Field

from src.models.common import (
    CommandOutcomeStatus,
    DiggerBase,
    RunStatus,
    UUIDv7,
    new_uuid7,
)


class CommandOutcome(DiggerBase):
    """Result of one command string for one project."""

    project_name: str
    workspace: str
    command: str
    status: CommandOutcomeStatus
    detail: str = ""


class RunResult(DiggerBase):
    """Aggregate outcome of one orchestrator pass over a command batch."""

    run_id: UUIDv7 = Field(default_factory=new_uuid7)
    status: RunStatus = RunStatus.SUCCEEDED
    all_locks_acquired: bool = True
    outcomes: list[CommandOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def by_status(self, status: CommandOutcomeStatus) -> list[CommandOutcome]:
        return [o for o in self.outcomes if o.status == status]
