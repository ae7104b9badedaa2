"""GitLab CI context and API client.

Context fields follow the predefined CI/CD variables
(https://docs.gitlab.com/ee/ci/variables/predefined_variables.html).
``MERGE_REQUEST_EVENT_NAME`` and ``DIGGER_COMMAND`` are set by the webhook
that triggers the pipeline.
"""

import logging
from enum import StrEnum
from urllib.parse import quote

import httpx
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.errors import CIServiceError, ConfigurationError
from src.models.common import LifecycleStage

logger = logging.getLogger(__name__)

# GitLab caps per_page at 100
_PAGE_SIZE = 100


class PipelineSource(StrEnum):
    """Values of CI_PIPELINE_SOURCE."""

    PUSH = "push"
    WEB = "web"
    SCHEDULE = "schedule"
    API = "api"
    EXTERNAL = "external"
    CHAT = "chat"
    WEBIDE = "webide"
    EXTERNAL_PULL_REQUEST_EVENT = "external_pull_request_event"
    PARENT_PIPELINE = "parent_pipeline"
    TRIGGER = "trigger"
    PIPELINE = "pipeline"
    MERGE_REQUEST_EVENT = "merge_request_event"


class GitLabEventType(StrEnum):
    """Values of MERGE_REQUEST_EVENT_NAME."""

    MERGE_REQUEST_OPENED = "merge_request_opened"
    MERGE_REQUEST_UPDATED = "merge_request_updated"
    MERGE_REQUEST_CLOSED = "merge_request_closed"
    MERGE_REQUEST_COMMENTED = "merge_request_commented"


_EVENT_STAGES: dict[GitLabEventType, LifecycleStage] = {
    GitLabEventType.MERGE_REQUEST_OPENED: LifecycleStage.OPENED,
    GitLabEventType.MERGE_REQUEST_UPDATED: LifecycleStage.UPDATED,
    GitLabEventType.MERGE_REQUEST_CLOSED: LifecycleStage.CLOSED,
    GitLabEventType.MERGE_REQUEST_COMMENTED: LifecycleStage.COMMENTED,
}


def lifecycle_stage(event_name: str) -> LifecycleStage | str:
    """Map a GitLab event name to a lifecycle stage.

    Unknown names are returned unchanged so the router can reject them.
    """
    try:
        return _EVENT_STAGES[GitLabEventType(event_name)]
    except ValueError:
        return event_name


class GitLabContext(BaseSettings):
    """GitLab pipeline context read from the job environment."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    pipeline_source: PipelineSource | None = Field(
        default=None, validation_alias=AliasChoices("CI_PIPELINE_SOURCE"),
    )
    event_type: str = Field(
        default="", validation_alias=AliasChoices("MERGE_REQUEST_EVENT_NAME"),
    )
    pipeline_id: int | None = Field(default=None, validation_alias=AliasChoices("CI_PIPELINE_ID"))
    pipeline_iid: int | None = Field(default=None, validation_alias=AliasChoices("CI_PIPELINE_IID"))
    merge_request_id: int | None = Field(
        default=None, validation_alias=AliasChoices("CI_MERGE_REQUEST_ID"),
    )
    merge_request_iid: int | None = Field(
        default=None, validation_alias=AliasChoices("CI_MERGE_REQUEST_IID"),
    )
    project_name: str = Field(default="", validation_alias=AliasChoices("CI_PROJECT_NAME"))
    project_namespace: str = Field(
        default="", validation_alias=AliasChoices("CI_PROJECT_NAMESPACE"),
    )
    project_id: int | None = Field(default=None, validation_alias=AliasChoices("CI_PROJECT_ID"))
    project_namespace_id: int | None = Field(
        default=None, validation_alias=AliasChoices("CI_PROJECT_NAMESPACE_ID"),
    )
    token: str = Field(default="", validation_alias=AliasChoices("GITLAB_TOKEN"))
    digger_command: str = Field(default="", validation_alias=AliasChoices("DIGGER_COMMAND"))
    requested_by: str = Field(default="", validation_alias=AliasChoices("GITLAB_USER_LOGIN"))

    @property
    def stage(self) -> LifecycleStage | str:
        return lifecycle_stage(self.event_type)

    @property
    def organisation(self) -> str:
        """Top-level group of the project namespace."""
        return self.project_namespace.split("/", 1)[0]

    def require_merge_request(self) -> int:
        if self.merge_request_iid is None:
            raise ConfigurationError("CI_MERGE_REQUEST_IID is not set; not a merge request pipeline")
        if self.project_id is None:
            raise ConfigurationError("CI_PROJECT_ID is not set")
        return self.merge_request_iid


class GitLabService:
    """GitLab REST API client implementing the CIService contract."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        project_id: int,
        client: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.project_id = project_id
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._headers = {"PRIVATE-TOKEN": token} if token else {}

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/v4{path}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, self._url(path), headers=self._headers, **kwargs,
            )
        except httpx.HTTPError as exc:
            raise CIServiceError(f"GitLab {method} {path} failed: {exc}") from exc
        return resp

    async def _json(self, method: str, path: str, **kwargs):
        resp = await self._request(method, path, **kwargs)
        return self._decode(method, path, resp)

    @staticmethod
    def _decode(method: str, path: str, resp: httpx.Response):
        if resp.status_code >= 400:
            raise CIServiceError(
                f"GitLab {method} {path} returned HTTP {resp.status_code}: {resp.text}"
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise CIServiceError(f"GitLab {method} {path} returned invalid JSON: {exc}") from exc

    async def _paginate(self, path: str, params: dict | None = None) -> list:
        """Collect every page of a list endpoint by following X-Next-Page."""
        items: list = []
        page = "1"
        while page:
            resp = await self._request(
                "GET", path, params={**(params or {}), "per_page": _PAGE_SIZE, "page": page},
            )
            data = self._decode("GET", path, resp)
            if not isinstance(data, list):
                raise CIServiceError(
                    f"GitLab GET {path} returned {type(data).__name__}, expected a list"
                )
            items.extend(data)
            page = resp.headers.get("X-Next-Page", "").strip()
        return items

    async def get_changed_files(self, mr_id: int) -> list[str]:
        path = f"/projects/{self.project_id}/merge_requests/{mr_id}/changes"
        data = await self._json("GET", path)
        try:
            return [change["new_path"] for change in data.get("changes", [])]
        except (AttributeError, KeyError, TypeError) as exc:
            raise CIServiceError(f"GitLab GET {path} returned a malformed payload: {exc!r}") from exc

    async def publish_comment(self, mr_id: int, comment: str) -> None:
        await self._json(
            "POST",
            f"/projects/{self.project_id}/merge_requests/{mr_id}/notes",
            json={"body": comment},
        )

    async def get_user_teams(self, organisation: str, user: str) -> list[str]:
        """Return the subgroups of ``organisation`` the user is a member of."""
        users = await self._json("GET", "/users", params={"username": user})
        if not users:
            return []
        group = quote(organisation, safe="")
        try:
            user_id = users[0]["id"]
            groups = [
                (g["id"], g["path"])
                for g in await self._paginate(f"/groups/{group}/descendant_groups")
            ]
        except (KeyError, TypeError, IndexError) as exc:
            raise CIServiceError(
                f"GitLab returned a malformed payload while resolving teams of {user}: {exc!r}"
            ) from exc

        teams: list[str] = []
        for group_id, group_path in groups:
            resp = await self._request("GET", f"/groups/{group_id}/members/all/{user_id}")
            if resp.status_code == 200:
                teams.append(group_path)
            elif resp.status_code != 404:
                raise CIServiceError(
                    f"GitLab membership lookup for group {group_path} returned "
                    f"HTTP {resp.status_code}: {resp.text}"
                )
        return teams

    async def close(self) -> None:
        await self._client.aclose()
