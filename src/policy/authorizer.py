"""Combine policy lookup, team membership and evaluation into one check.

Posture:
- no policy configured (empty text) -> allow
- policy fetch, team lookup or engine failure -> error, caller denies
"""

import logging
from typing import Protocol

from src.ci.base import CIService
from src.models.policy import PolicyInput
from src.policy.engine import PolicyEngine, resolve_decision
from src.policy.provider import PolicyProvider

logger = logging.getLogger(__name__)


class PolicyChecker(Protocol):
    async def check(
        self,
        scm_organisation: str,
        namespace: str,
        project_name: str,
        command: str,
        requested_by: str,
    ) -> bool:
        ...


class NoOpPolicyChecker:
    """Grants everything; used when no policy host is configured."""

    async def check(
        self,
        scm_organisation: str,
        namespace: str,
        project_name: str,
        command: str,
        requested_by: str,
    ) -> bool:
        return True


class Authorizer:
    """Evaluate the RBAC policy governing a project for one command."""

    def __init__(
        self,
        *,
        provider: PolicyProvider,
        engine: PolicyEngine,
        ci_service: CIService,
        organisation: str,
    ) -> None:
        self._provider = provider
        self._engine = engine
        self._ci_service = ci_service
        self.organisation = organisation

    async def check(
        self,
        scm_organisation: str,
        namespace: str,
        project_name: str,
        command: str,
        requested_by: str,
    ) -> bool:
        """Return whether ``requested_by`` may run ``command`` on the project.

        Raises:
            DiggerError: policy fetch, team lookup or evaluation failed. The
                decision is a deny; no default is substituted.
        """
        policy = await self._provider.get_policy(namespace, project_name)

        try:
            teams = await self._ci_service.get_user_teams(scm_organisation, requested_by)
        except Exception:
            logger.error(
                "Error while fetching user teams for %s in %s",
                requested_by, scm_organisation,
            )
            raise

        if policy == "":
            return True

        facts = PolicyInput(
            user=requested_by,
            organisation=self.organisation,
            teams=list(teams),
            action=command,
            project=project_name,
        )
        logger.debug("Evaluating policy with input %s: %s", facts.as_facts(), policy)

        values = await self._engine.evaluate(policy, facts.as_facts())
        decision = resolve_decision(values)
        if not decision.allowed:
            logger.info(
                "Policy denied %s for %s on %s/%s",
                command, requested_by, namespace, project_name,
            )
        return decision.allowed
