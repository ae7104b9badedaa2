"""IaC executor contract.

The orchestrator hands an executor a project command after authorization and
locking. How ``plan`` and ``apply`` produce their results is entirely the
executor's business.
"""

from dataclasses import dataclass
from typing import Protocol

from src.models.project import ProjectCommand


@dataclass(frozen=True)
class ExecutionContext:
    """Where and for whom a command runs."""

    project: ProjectCommand
    namespace: str
    repository: str
    pr_number: int
    requested_by: str = ""


@dataclass
class ExecutionResult:
    """Output of one plan or apply."""

    success: bool
    output: str = ""


class Executor(Protocol):
    async def plan(self, ctx: ExecutionContext) -> ExecutionResult:
        ...

    async def apply(self, ctx: ExecutionContext) -> ExecutionResult:
        ...
