"""Policy facts and decisions. Derived per check, never persisted."""

from typing import Any

from pydantic import Field

from src.models.common import DiggerBase


class PolicyInput(DiggerBase):
    """Fact set handed to the policy engine as ``input``."""

    user: str
    organisation: str
    teams: list[str] = Field(default_factory=list)
    action: str
    project: str

    def as_facts(self) -> dict[str, Any]:
        return self.model_dump()


class PolicyDecision(DiggerBase):
    """Outcome of a policy evaluation."""

    allowed: bool
    reason: str | None = None
