"""Tests for the GitLab context and REST client."""

import json

import httpx
import pytest

from src.ci.base import CIService
from src.ci.gitlab import GitLabContext, GitLabService, lifecycle_stage
from src.errors import CIServiceError, ConfigurationError
from src.models.common import LifecycleStage


# ===================================================================
# Context
# ===================================================================


class TestGitLabContext:
    def test_reads_predefined_variables(self, monkeypatch) -> None:
        monkeypatch.setenv("CI_PIPELINE_SOURCE", "merge_request_event")
        monkeypatch.setenv("MERGE_REQUEST_EVENT_NAME", "merge_request_updated")
        monkeypatch.setenv("CI_MERGE_REQUEST_IID", "17")
        monkeypatch.setenv("CI_PROJECT_ID", "301")
        monkeypatch.setenv("CI_PROJECT_NAME", "infra")
        monkeypatch.setenv("CI_PROJECT_NAMESPACE", "acme/platform")
        monkeypatch.setenv("GITLAB_USER_LOGIN", "alice")
        monkeypatch.setenv("DIGGER_COMMAND", "digger plan")

        ctx = GitLabContext()

        assert ctx.merge_request_iid == 17
        assert ctx.project_id == 301
        assert ctx.project_name == "infra"
        assert ctx.requested_by == "alice"
        assert ctx.digger_command == "digger plan"
        assert ctx.stage == LifecycleStage.UPDATED
        assert ctx.organisation == "acme"
        assert ctx.require_merge_request() == 17

    def test_missing_merge_request(self, monkeypatch) -> None:
        monkeypatch.delenv("CI_MERGE_REQUEST_IID", raising=False)
        with pytest.raises(ConfigurationError, match="CI_MERGE_REQUEST_IID"):
            GitLabContext().require_merge_request()

    def test_event_names_map_to_stages(self) -> None:
        assert lifecycle_stage("merge_request_opened") == LifecycleStage.OPENED
        assert lifecycle_stage("merge_request_closed") == LifecycleStage.CLOSED
        assert lifecycle_stage("merge_request_commented") == LifecycleStage.COMMENTED

    def test_unknown_event_returned_unchanged(self) -> None:
        assert lifecycle_stage("merge_request_merged") == "merge_request_merged"


# ===================================================================
# REST client
# ===================================================================


def _service(handler) -> GitLabService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitLabService(
        base_url="https://gitlab.example.com/", token="glpat-x", project_id=301, client=client,
    )


class TestGitLabService:
    def test_satisfies_ci_service_protocol(self) -> None:
        assert isinstance(_service(lambda r: httpx.Response(200)), CIService)

    @pytest.mark.anyio
    async def test_changed_files(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"changes": [
                {"old_path": "a.tf", "new_path": "infra/a.tf"},
                {"old_path": "b.tf", "new_path": "infra/b.tf"},
            ]})

        files = await _service(handler).get_changed_files(17)

        assert files == ["infra/a.tf", "infra/b.tf"]
        assert seen[0].url.path == "/api/v4/projects/301/merge_requests/17/changes"
        assert seen[0].headers["PRIVATE-TOKEN"] == "glpat-x"

    @pytest.mark.anyio
    async def test_publish_comment(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/api/v4/projects/301/merge_requests/17/notes"
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": 1})

        await _service(handler).publish_comment(17, "Plan for project a")
        assert bodies == [{"body": "Plan for project a"}]

    @pytest.mark.anyio
    async def test_http_error_status_raises(self) -> None:
        service = _service(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(CIServiceError, match="500"):
            await service.get_changed_files(17)

    @pytest.mark.anyio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CIServiceError):
            await _service(handler).publish_comment(17, "x")

    @pytest.mark.anyio
    async def test_user_teams_from_subgroup_membership(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/api/v4/users":
                assert request.url.params["username"] == "alice"
                return httpx.Response(200, json=[{"id": 9, "username": "alice"}])
            if path == "/api/v4/groups/acme/descendant_groups":
                return httpx.Response(200, json=[
                    {"id": 1, "path": "ops"},
                    {"id": 2, "path": "dev"},
                ])
            if path == "/api/v4/groups/1/members/all/9":
                return httpx.Response(200, json={"id": 9})
            if path == "/api/v4/groups/2/members/all/9":
                return httpx.Response(404, json={"message": "404 Not found"})
            return httpx.Response(500)

        assert await _service(handler).get_user_teams("acme", "alice") == ["ops"]

    @pytest.mark.anyio
    async def test_unknown_user_has_no_teams(self) -> None:
        service = _service(lambda r: httpx.Response(200, json=[]))
        assert await service.get_user_teams("acme", "ghost") == []

    @pytest.mark.anyio
    async def test_membership_lookup_failure_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/api/v4/users":
                return httpx.Response(200, json=[{"id": 9}])
            if path.endswith("/descendant_groups"):
                return httpx.Response(200, json=[{"id": 1, "path": "ops"}])
            return httpx.Response(503, text="unavailable")

        with pytest.raises(CIServiceError, match="503"):
            await _service(handler).get_user_teams("acme", "alice")

    @pytest.mark.anyio
    async def test_non_json_user_lookup_raises(self) -> None:
        service = _service(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(CIServiceError, match="invalid JSON"):
            await service.get_user_teams("acme", "alice")

    @pytest.mark.anyio
    async def test_user_without_id_raises(self) -> None:
        service = _service(lambda r: httpx.Response(200, json=[{"username": "alice"}]))
        with pytest.raises(CIServiceError, match="malformed"):
            await service.get_user_teams("acme", "alice")

    @pytest.mark.anyio
    async def test_malformed_changes_payload_raises(self) -> None:
        service = _service(lambda r: httpx.Response(200, json={"changes": [{"old_path": "a"}]}))
        with pytest.raises(CIServiceError, match="malformed"):
            await service.get_changed_files(17)

    @pytest.mark.anyio
    async def test_team_lookup_follows_every_page(self) -> None:
        groups = [{"id": i, "path": f"team{i}"} for i in range(1, 151)]
        pages_requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/api/v4/users":
                return httpx.Response(200, json=[{"id": 9}])
            if path == "/api/v4/groups/acme/descendant_groups":
                page = int(request.url.params["page"])
                per_page = int(request.url.params["per_page"])
                pages_requested.append(str(page))
                chunk = groups[(page - 1) * per_page: page * per_page]
                has_more = page * per_page < len(groups)
                headers = {"X-Next-Page": str(page + 1) if has_more else ""}
                return httpx.Response(200, json=chunk, headers=headers)
            if path == "/api/v4/groups/120/members/all/9":
                return httpx.Response(200, json={"id": 9})
            return httpx.Response(404)

        assert await _service(handler).get_user_teams("acme", "alice") == ["team120"]
        assert pages_requested == ["1", "2"]
