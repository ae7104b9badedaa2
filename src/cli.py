"""GitLab CI entry point.

Reads Settings and the GitLab pipeline context from the environment, resolves
the impacted projects, routes the merge request event and runs the
orchestrator. The process exits 1 iff a lock could not be acquired, 0 when
every lock was acquired (or the event was ignored), and 2 when the run could
not start: a ConfigurationError or other DiggerError raised before the
orchestrator ran, such as a missing merge request context or a bad digger.yml.
"""

import asyncio
import sys

import structlog

from src.ci.gitlab import GitLabContext, GitLabService
from src.config.digger_config import DiggerConfig
from src.config.logging import configure_logging
from src.config.settings import Settings, get_settings
from src.db.session import engine, get_session_factory
from src.errors import DiggerError, UnsupportedEventError
from src.events.commands import CommentCommandParser
from src.events.router import EventRouter, get_impacted_projects
from src.executor.terraform import TerraformExecutor
from src.locking.coordinator import LockCoordinator
from src.models.run import RunResult
from src.orchestration.orchestrator import Orchestrator, RunContext
from src.policy.authorizer import Authorizer, NoOpPolicyChecker, PolicyChecker
from src.policy.engine import OpaPolicyEngine
from src.policy.provider import HttpPolicyProvider

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


def build_policy_checker(
    settings: Settings,
    ci_service: GitLabService,
    provider: HttpPolicyProvider | None,
) -> PolicyChecker:
    if provider is None:
        return NoOpPolicyChecker()
    return Authorizer(
        provider=provider,
        engine=OpaPolicyEngine(),
        ci_service=ci_service,
        organisation=settings.DIGGER_ORGANISATION,
    )


async def run_pipeline(settings: Settings, context: GitLabContext) -> RunResult:
    """Run one merge request event end to end."""
    mr_id = context.require_merge_request()
    config = DiggerConfig.load(settings.DIGGER_CONFIG_PATH)

    ci_service = GitLabService(
        base_url=settings.GITLAB_URL,
        token=context.token,
        project_id=context.project_id,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    provider = None
    if settings.policy_checks_enabled:
        provider = HttpPolicyProvider(
            host=settings.DIGGER_HOST,
            organisation=settings.DIGGER_ORGANISATION,
            token=settings.DIGGER_TOKEN,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    try:
        impacted = await get_impacted_projects(mr_id, config, ci_service)
        router = EventRouter(CommentCommandParser(settings.COMMENT_CONTAINMENT))
        try:
            commands = router.convert_event_to_commands(
                context.stage, impacted, context.digger_command,
            )
        except UnsupportedEventError as exc:
            logger.warning("event_ignored", reason=str(exc))
            return RunResult()
        logger.info(
            "commands_resolved",
            event=context.event_type,
            projects=[c.project_name for c in commands],
        )

        orchestrator = Orchestrator(
            authorizer=build_policy_checker(settings, ci_service, provider),
            coordinator=LockCoordinator(get_session_factory()),
            ci_service=ci_service,
            executor=TerraformExecutor(timeout=settings.EXECUTOR_TIMEOUT_SECONDS),
            release_lock_after_plan=settings.RELEASE_LOCK_AFTER_PLAN,
        )
        return await orchestrator.run(
            commands,
            RunContext(
                scm_organisation=context.organisation,
                namespace=context.project_namespace,
                repository=context.project_name,
                pr_number=mr_id,
                requested_by=context.requested_by,
            ),
        )
    finally:
        await ci_service.close()
        if provider is not None:
            await provider.close()
        await engine.dispose()


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    context = GitLabContext()
    logger.info(
        "gitlab_context",
        event=context.event_type,
        project=f"{context.project_namespace}/{context.project_name}",
        merge_request=context.merge_request_iid,
    )

    try:
        result = asyncio.run(run_pipeline(settings, context))
    except DiggerError as exc:
        logger.error("run_failed", error=str(exc))
        sys.exit(2)

    logger.info(
        "run_finished",
        run_id=str(result.run_id),
        status=result.status.value,
        outcomes=[o.model_dump(mode="json") for o in result.outcomes],
    )
    sys.exit(result.exit_code)


if __name__ == "__main__":
    main()
