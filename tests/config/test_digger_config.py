"""Tests for digger.yml loading and impacted-project resolution."""

from pathlib import Path

import pytest

from src.config.digger_config import DiggerConfig
from src.errors import ConfigurationError
from src.models.project import Project

DIGGER_YML = """
projects:
  - name: network
    dir: infra/network
    workspace: prod
    workflow: strict
  - name: database
    dir: ./infra/database
  - name: edge
    dir: infra/edge
    terragrunt: true
workflows:
  strict:
    on_pull_request_pushed: ["digger lock", "digger plan"]
    on_pull_request_closed: ["digger unlock"]
    on_commit_to_default: ["digger apply"]
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "digger.yml"
    path.write_text(text, encoding="utf-8")
    return path


# ===================================================================
# Loading
# ===================================================================


class TestLoad:
    def test_projects_in_file_order(self, tmp_path: Path) -> None:
        config = DiggerConfig.load(_write(tmp_path, DIGGER_YML))
        assert [p.name for p in config.projects] == ["network", "database", "edge"]

    def test_named_workflow_applied(self, tmp_path: Path) -> None:
        config = DiggerConfig.load(_write(tmp_path, DIGGER_YML))
        network = config.get_project("network")
        assert network.workspace == "prod"
        assert network.workflow_configuration.on_pull_request_pushed == [
            "digger lock", "digger plan",
        ]

    def test_default_workflow_when_unspecified(self, tmp_path: Path) -> None:
        config = DiggerConfig.load(_write(tmp_path, DIGGER_YML))
        database = config.get_project("database")
        assert database.workspace == "default"
        assert database.workflow_configuration.on_pull_request_pushed == ["digger plan"]
        assert database.workflow_configuration.on_commit_to_default == ["digger apply"]

    def test_terragrunt_flag(self, tmp_path: Path) -> None:
        config = DiggerConfig.load(_write(tmp_path, DIGGER_YML))
        assert config.get_project("edge").terragrunt is True
        assert config.get_project("network").terragrunt is False

    def test_unknown_project_is_none(self, tmp_path: Path) -> None:
        config = DiggerConfig.load(_write(tmp_path, DIGGER_YML))
        assert config.get_project("missing") is None

    def test_empty_file_has_no_projects(self, tmp_path: Path) -> None:
        assert DiggerConfig.load(_write(tmp_path, "")).projects == []

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read"):
            DiggerConfig.load(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            DiggerConfig.load(_write(tmp_path, "projects: [unclosed"))

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="mapping"):
            DiggerConfig.load(_write(tmp_path, "- a\n- b\n"))

    def test_unknown_workflow(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown workflow"):
            DiggerConfig.from_dict({"projects": [{"name": "a", "workflow": "nope"}]})

    def test_duplicate_names(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate"):
            DiggerConfig.from_dict({"projects": [{"name": "a"}, {"name": "a", "dir": "x"}]})

    def test_project_without_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid"):
            DiggerConfig.from_dict({"projects": [{"dir": "infra"}]})


# ===================================================================
# Impacted projects
# ===================================================================


class TestModifiedProjects:
    @pytest.fixture
    def config(self, tmp_path: Path) -> DiggerConfig:
        return DiggerConfig.load(_write(tmp_path, DIGGER_YML))

    def test_file_inside_project_dir(self, config: DiggerConfig) -> None:
        impacted = config.get_modified_projects(["infra/network/main.tf"])
        assert [p.name for p in impacted] == ["network"]

    def test_leading_dot_in_dir(self, config: DiggerConfig) -> None:
        impacted = config.get_modified_projects(["infra/database/modules/rds.tf"])
        assert [p.name for p in impacted] == ["database"]

    def test_sibling_prefix_does_not_match(self, config: DiggerConfig) -> None:
        assert config.get_modified_projects(["infra/network-legacy/main.tf"]) == []

    def test_results_follow_config_order(self, config: DiggerConfig) -> None:
        impacted = config.get_modified_projects(
            ["infra/edge/terragrunt.hcl", "infra/network/vpc.tf"],
        )
        assert [p.name for p in impacted] == ["network", "edge"]

    def test_root_project_matches_everything(self) -> None:
        config = DiggerConfig([Project(name="root")])
        assert [p.name for p in config.get_modified_projects(["docs/README.md"])] == ["root"]

    def test_no_changes(self, config: DiggerConfig) -> None:
        assert config.get_modified_projects([]) == []
