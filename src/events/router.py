"""Event router — map a merge request event onto per-project commands.

OPENED    -> workflow on_commit_to_default
UPDATED   -> workflow on_pull_request_pushed
CLOSED    -> workflow on_pull_request_closed
COMMENTED -> one command per matched phrase per impacted project
"""

import logging

from src.ci.base import CIService
from src.config.digger_config import DiggerConfig
from src.errors import CIServiceError, UnsupportedEventError
from src.events.commands import CommentCommandParser
from src.models.common import LifecycleStage
from src.models.project import Project, ProjectCommand

logger = logging.getLogger(__name__)


_STAGE_WORKFLOW_FIELD: dict[LifecycleStage, str] = {
    LifecycleStage.OPENED: "on_commit_to_default",
    LifecycleStage.UPDATED: "on_pull_request_pushed",
    LifecycleStage.CLOSED: "on_pull_request_closed",
}


async def get_impacted_projects(
    mr_id: int,
    config: DiggerConfig,
    service: CIService,
) -> list[Project]:
    """Resolve the projects touched by a merge request's changed files."""
    try:
        changed_files = await service.get_changed_files(mr_id)
    except CIServiceError as exc:
        raise CIServiceError(f"could not get changed files: {exc}") from exc
    return config.get_modified_projects(changed_files)


class EventRouter:
    """Turn a lifecycle event into an ordered list of ProjectCommands."""

    def __init__(self, parser: CommentCommandParser | None = None) -> None:
        self.parser = parser or CommentCommandParser()

    def convert_event_to_commands(
        self,
        stage: LifecycleStage | str,
        impacted_projects: list[Project],
        comment: str = "",
    ) -> list[ProjectCommand]:
        """Build commands for every impacted project.

        Raises:
            UnsupportedEventError: ``stage`` has no routing rule.
        """
        if stage in _STAGE_WORKFLOW_FIELD:
            field = _STAGE_WORKFLOW_FIELD[LifecycleStage(stage)]
            return [
                ProjectCommand.for_project(
                    project, getattr(project.workflow_configuration, field),
                )
                for project in impacted_projects
            ]

        if stage == LifecycleStage.COMMENTED:
            commands: list[ProjectCommand] = []
            for phrase in self.parser.parse(comment):
                for project in impacted_projects:
                    commands.append(ProjectCommand.for_project(project, [phrase.value]))
            if not commands:
                logger.info("Comment contains no supported command")
            return commands

        raise UnsupportedEventError(f"unsupported event type: {stage}")
