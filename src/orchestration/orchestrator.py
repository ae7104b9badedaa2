"""Authorize, lock, execute and aggregate one command batch.

One sequential pass over a command batch:

1. Authorize every command string. A deny skips the command (no lock is
   attempted); an authorization error is recorded against that command only.
2. ``digger lock`` acquires the project lock. ``digger plan`` and
   ``digger apply`` acquire it and then delegate to the executor.
   ``digger unlock`` releases it.
3. A failed acquisition clears the batch-wide "all locks acquired" flag but
   never stops the remaining commands.

The pass returns a RunResult; FAILED iff any acquisition failed.
"""

import logging
from dataclasses import dataclass

import structlog

from src.ci.base import CIService
from src.errors import CIServiceError, DiggerError, ExecutionError
from src.executor.base import ExecutionContext, Executor
from src.locking.coordinator import LockCoordinator
from src.locking.project_lock import ProjectLock
from src.models.common import CommandOutcomeStatus, DiggerCommand, RunStatus
from src.models.lock import LockKey
from src.models.project import ProjectCommand
from src.models.run import CommandOutcome, RunResult
from src.policy.authorizer import PolicyChecker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunContext:
    """Merge request facts shared by every command in a batch."""

    scm_organisation: str
    namespace: str
    repository: str
    pr_number: int
    requested_by: str


class Orchestrator:
    """Drive authorized, serialized execution of a ProjectCommand batch."""

    def __init__(
        self,
        *,
        authorizer: PolicyChecker,
        coordinator: LockCoordinator,
        ci_service: CIService,
        executor: Executor,
        release_lock_after_plan: bool = True,
    ) -> None:
        self._authorizer = authorizer
        self._coordinator = coordinator
        self._ci_service = ci_service
        self._executor = executor
        self.release_lock_after_plan = release_lock_after_plan

    async def run(self, commands: list[ProjectCommand], ctx: RunContext) -> RunResult:
        """Process every command of every project, in order."""
        result = RunResult()
        structlog.contextvars.bind_contextvars(run_id=str(result.run_id))
        try:
            for project_command in commands:
                project_lock = ProjectLock(
                    coordinator=self._coordinator,
                    ci_service=self._ci_service,
                    key=LockKey(
                        namespace=ctx.namespace,
                        repository=ctx.repository,
                        project=project_command.project_name,
                        workspace=project_command.project_workspace,
                    ),
                )
                for command in project_command.commands:
                    outcome = await self._run_command(
                        project_command, command, ctx, project_lock,
                    )
                    if outcome.status == CommandOutcomeStatus.LOCK_FAILED:
                        result.all_locks_acquired = False
                    result.outcomes.append(outcome)
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

        result.status = RunStatus.SUCCEEDED if result.all_locks_acquired else RunStatus.FAILED
        logger.info(
            "Run %s finished %s (%d commands, %d lock failures)",
            result.run_id, result.status.value, len(result.outcomes),
            len(result.by_status(CommandOutcomeStatus.LOCK_FAILED)),
        )
        return result

    # ------------------------------------------------------------------
    # Per-command handling
    # ------------------------------------------------------------------

    @staticmethod
    def _outcome(
        project_command: ProjectCommand,
        command: str,
        status: CommandOutcomeStatus,
        detail: str = "",
    ) -> CommandOutcome:
        return CommandOutcome(
            project_name=project_command.project_name,
            workspace=project_command.project_workspace,
            command=command,
            status=status,
            detail=detail,
        )

    async def _run_command(
        self,
        project_command: ProjectCommand,
        command: str,
        ctx: RunContext,
        project_lock: ProjectLock,
    ) -> CommandOutcome:
        try:
            allowed = await self._authorizer.check(
                ctx.scm_organisation,
                ctx.namespace,
                project_command.project_name,
                command,
                ctx.requested_by,
            )
        except DiggerError as exc:
            logger.error(
                "Authorization failed for %s on %s: %s",
                command, project_command.project_name, exc,
            )
            return self._outcome(
                project_command, command,
                CommandOutcomeStatus.ERROR, f"authorization error: {exc}",
            )

        if not allowed:
            await self._notify(
                ctx.pr_number,
                f"User {ctx.requested_by} is not allowed to perform action: "
                f"{command} on project {project_command.project_name}",
            )
            return self._outcome(
                project_command, command, CommandOutcomeStatus.DENIED, "denied by policy",
            )

        if command == DiggerCommand.LOCK:
            if not await project_lock.lock(ctx.pr_number, ctx.requested_by):
                return self._outcome(
                    project_command, command,
                    CommandOutcomeStatus.LOCK_FAILED, "lock held by another MR",
                )
            return self._outcome(project_command, command, CommandOutcomeStatus.EXECUTED)

        if command == DiggerCommand.UNLOCK:
            if not await project_lock.unlock(ctx.pr_number, ctx.requested_by):
                return self._outcome(
                    project_command, command,
                    CommandOutcomeStatus.NOT_HELD, "lock not held by this MR",
                )
            return self._outcome(project_command, command, CommandOutcomeStatus.EXECUTED)

        if command in (DiggerCommand.PLAN, DiggerCommand.APPLY):
            return await self._run_locked(
                project_command, DiggerCommand(command), ctx, project_lock,
            )

        logger.warning("Unsupported command %r for %s", command, project_command.project_name)
        return self._outcome(
            project_command, command,
            CommandOutcomeStatus.ERROR, f"unsupported command: {command}",
        )

    async def _run_locked(
        self,
        project_command: ProjectCommand,
        command: DiggerCommand,
        ctx: RunContext,
        project_lock: ProjectLock,
    ) -> CommandOutcome:
        """Acquire the project lock, then plan or apply."""
        held_before = await project_lock.held_by(ctx.pr_number)
        if not await project_lock.lock(ctx.pr_number, ctx.requested_by):
            return self._outcome(
                project_command, command.value,
                CommandOutcomeStatus.LOCK_FAILED, "lock held by another MR",
            )

        exec_ctx = ExecutionContext(
            project=project_command,
            namespace=ctx.namespace,
            repository=ctx.repository,
            pr_number=ctx.pr_number,
            requested_by=ctx.requested_by,
        )
        action = "plan" if command == DiggerCommand.PLAN else "apply"
        try:
            if command == DiggerCommand.PLAN:
                exec_result = await self._executor.plan(exec_ctx)
            else:
                exec_result = await self._executor.apply(exec_ctx)
        except ExecutionError as exc:
            logger.error("%s failed for %s: %s", action, project_command.project_name, exc)
            await self._notify(
                ctx.pr_number,
                f"Error during {action} for project {project_command.project_name}:\n"
                f"```\n{exc.output or exc}\n```",
            )
            return self._outcome(
                project_command, command.value, CommandOutcomeStatus.ERROR, str(exc),
            )
        finally:
            # apply keeps the hold until an explicit unlock
            if (command == DiggerCommand.PLAN and self.release_lock_after_plan
                    and not held_before):
                await project_lock.release_silently(ctx.pr_number, ctx.requested_by)

        await self._notify(
            ctx.pr_number,
            f"{action.capitalize()} for project {project_command.project_name}:\n"
            f"```\n{exec_result.output}\n```",
        )
        return self._outcome(project_command, command.value, CommandOutcomeStatus.EXECUTED)

    async def _notify(self, pr_number: int, text: str) -> None:
        try:
            await self._ci_service.publish_comment(pr_number, text)
        except CIServiceError as exc:
            logger.warning("Could not publish comment on MR #%d: %s", pr_number, exc)
