"""Project and ProjectCommand models.

A Project is resolved from digger.yml for a given event and never mutated.
A ProjectCommand is one resolved unit of work produced by the event router
and consumed once by the orchestrator.
"""

from pydantic import Field

from src.models.common import DiggerBase, DiggerCommand


DEFAULT_WORKSPACE = "default"


class WorkflowConfiguration(DiggerBase):
    """Command sequences keyed by merge request lifecycle stage."""

    model_config = {"frozen": True, "populate_by_name": True}

    on_commit_to_default: list[str] = Field(
        default_factory=lambda: [DiggerCommand.APPLY.value],
    )
    on_pull_request_pushed: list[str] = Field(
        default_factory=lambda: [DiggerCommand.PLAN.value],
    )
    on_pull_request_closed: list[str] = Field(
        default_factory=lambda: [DiggerCommand.UNLOCK.value],
    )


class Project(DiggerBase):
    """A single Terraform / Terragrunt root managed by Digger."""

    model_config = {"frozen": True, "populate_by_name": True}

    name: str = Field(..., min_length=1)
    dir: str = Field(default=".", min_length=1)
    workspace: str = Field(default=DEFAULT_WORKSPACE, min_length=1)
    terragrunt: bool = False
    workflow_configuration: WorkflowConfiguration = Field(
        default_factory=WorkflowConfiguration,
    )


class ProjectCommand(DiggerBase):
    """Ordered command strings to run against one project + workspace."""

    project_name: str
    project_dir: str
    project_workspace: str = DEFAULT_WORKSPACE
    terragrunt: bool = False
    commands: list[str] = Field(default_factory=list)

    @classmethod
    def for_project(cls, project: Project, commands: list[str]) -> "ProjectCommand":
        return cls(
            project_name=project.name,
            project_dir=project.dir,
            project_workspace=project.workspace,
            terragrunt=project.terragrunt,
            commands=list(commands),
        )
