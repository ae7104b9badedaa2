"""digger.yml loader and impacted-project resolution.

Example::

    projects:
      - name: network
        dir: infra/network
        workspace: default
        workflow: default
    workflows:
      default:
        on_pull_request_pushed: ["digger plan"]
        on_pull_request_closed: ["digger unlock"]
        on_commit_to_default: ["digger apply"]
"""

import logging
from pathlib import Path, PurePosixPath

import yaml
from pydantic import Field, ValidationError

from src.errors import ConfigurationError
from src.models.common import DiggerBase
from src.models.project import DEFAULT_WORKSPACE, Project, WorkflowConfiguration

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW = "default"


class ProjectEntry(DiggerBase):
    """One ``projects:`` entry as written in digger.yml."""

    name: str = Field(..., min_length=1)
    dir: str = "."
    workspace: str = DEFAULT_WORKSPACE
    terragrunt: bool = False
    workflow: str = DEFAULT_WORKFLOW


class DiggerConfigFile(DiggerBase):
    """Raw digger.yml document."""

    projects: list[ProjectEntry] = Field(default_factory=list)
    workflows: dict[str, WorkflowConfiguration] = Field(default_factory=dict)


def _normalise_dir(path: str) -> PurePosixPath:
    parts = [p for p in PurePosixPath(path).parts if p not in (".", "/")]
    return PurePosixPath(*parts) if parts else PurePosixPath(".")


def _contains(project_dir: PurePosixPath, changed_file: str) -> bool:
    if str(project_dir) == ".":
        return True
    changed = _normalise_dir(changed_file)
    return changed == project_dir or project_dir in changed.parents


class DiggerConfig:
    """Resolved project configuration for one repository."""

    def __init__(self, projects: list[Project]) -> None:
        names = [p.name for p in projects]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate project names in digger.yml: {duplicates}")
        self.projects = list(projects)

    @classmethod
    def from_dict(cls, data: dict) -> "DiggerConfig":
        try:
            raw = DiggerConfigFile.model_validate(data or {})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid digger.yml: {exc}") from exc

        workflows = dict(raw.workflows)
        workflows.setdefault(DEFAULT_WORKFLOW, WorkflowConfiguration())

        projects: list[Project] = []
        for entry in raw.projects:
            if entry.workflow not in workflows:
                raise ConfigurationError(
                    f"Project '{entry.name}' references unknown workflow '{entry.workflow}'"
                )
            projects.append(
                Project(
                    name=entry.name,
                    dir=entry.dir,
                    workspace=entry.workspace,
                    terragrunt=entry.terragrunt,
                    workflow_configuration=workflows[entry.workflow],
                )
            )
        return cls(projects)

    @classmethod
    def load(cls, path: str | Path) -> "DiggerConfig":
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read {path}: {exc}") from exc
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
        return cls.from_dict(data or {})

    def get_project(self, name: str) -> Project | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def get_modified_projects(self, changed_files: list[str]) -> list[Project]:
        """Return projects (in config order) whose directory holds a changed file."""
        impacted: list[Project] = []
        for project in self.projects:
            project_dir = _normalise_dir(project.dir)
            if any(_contains(project_dir, f) for f in changed_files):
                impacted.append(project)
        logger.debug(
            "Impacted projects for %d changed files: %s",
            len(changed_files), [p.name for p in impacted],
        )
        return impacted
