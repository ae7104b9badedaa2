"""Access policy providers.

The HTTP provider fetches the project-scoped policy first and falls back to
the organisation-scoped policy on 404. Both missing means "no restriction
configured" and yields an empty policy. Any other status is an error; the
caller must not turn it into an allow or a deny.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from src.errors import PolicyTransportError, UnexpectedStatusError

logger = logging.getLogger(__name__)


def normalise_namespace(namespace: str) -> str:
    """Make a namespace safe to embed as a single path segment."""
    return namespace.replace("/", "-")


class PolicyProvider(ABC):
    """Source of raw policy documents."""

    @abstractmethod
    async def get_policy(self, namespace: str, project_name: str) -> str:
        """Return the policy text governing a project ("" when none)."""
        ...


class HttpPolicyProvider(PolicyProvider):
    """Fetch RBAC policies from the Digger policy host."""

    def __init__(
        self,
        *,
        host: str,
        organisation: str,
        token: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.host = host.rstrip("/")
        self.organisation = organisation
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def _fetch(self, path: str) -> httpx.Response:
        try:
            return await self._client.get(
                f"{self.host}{path}",
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as exc:
            raise PolicyTransportError(f"Error fetching policy from {path}: {exc}") from exc

    async def get_policy_for_organisation(self) -> httpx.Response:
        return await self._fetch(f"/orgs/{self.organisation}/access-policy")

    async def get_policy_for_namespace(
        self, namespace: str, project_name: str,
    ) -> httpx.Response:
        namespace = normalise_namespace(namespace)
        return await self._fetch(f"/repos/{namespace}/projects/{project_name}/access-policy")

    async def get_policy(self, namespace: str, project_name: str) -> str:
        """Fetch the policy for a project, falling back to the org-level policy."""
        resp = await self.get_policy_for_namespace(namespace, project_name)
        if resp.status_code == 200:
            return resp.text
        if resp.status_code != 404:
            raise UnexpectedStatusError(
                "unexpected response while fetching project policy",
                status_code=resp.status_code,
                body=resp.text,
            )

        logger.debug(
            "No policy for %s/%s, falling back to organisation %s",
            namespace, project_name, self.organisation,
        )
        resp = await self.get_policy_for_organisation()
        if resp.status_code == 200:
            return resp.text
        if resp.status_code == 404:
            return ""
        raise UnexpectedStatusError(
            "unexpected response while fetching organisation policy",
            status_code=resp.status_code,
            body=resp.text,
        )

    async def close(self) -> None:
        await self._client.aclose()
