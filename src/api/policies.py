"""Access policy endpoints consumed by HttpPolicyProvider.

GET /orgs/{org}/access-policy                            — org-level policy
PUT /orgs/{org}/access-policy                            — set org-level policy
GET /repos/{namespace}/projects/{project}/access-policy  — project policy
PUT /repos/{namespace}/projects/{project}/access-policy  — set project policy

GET returns the raw policy text, or 404 with an empty body when none is set.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from src.api.dependencies import get_policy_repo, require_bearer_token
from src.repositories.policies import AccessPolicyRepository

router = APIRouter(tags=["policies"], dependencies=[Depends(require_bearer_token)])


def _policy_response(policy: str | None) -> Response:
    if policy is None:
        return Response(status_code=404)
    return PlainTextResponse(policy)


@router.get("/orgs/{org}/access-policy")
async def get_org_policy(
    org: str,
    repo: AccessPolicyRepository = Depends(get_policy_repo),
) -> Response:
    row = await repo.get_for_organisation(org)
    return _policy_response(row.policy if row else None)


@router.put("/orgs/{org}/access-policy")
async def put_org_policy(
    org: str,
    request: Request,
    repo: AccessPolicyRepository = Depends(get_policy_repo),
) -> dict:
    body = (await request.body()).decode("utf-8")
    row = await repo.set_for_organisation(org, body)
    return {"policy_id": str(row.policy_id), "organisation": org}


@router.get("/repos/{namespace}/projects/{project}/access-policy")
async def get_project_policy(
    namespace: str,
    project: str,
    repo: AccessPolicyRepository = Depends(get_policy_repo),
) -> Response:
    row = await repo.get_for_project(namespace, project)
    return _policy_response(row.policy if row else None)


@router.put("/repos/{namespace}/projects/{project}/access-policy")
async def put_project_policy(
    namespace: str,
    project: str,
    request: Request,
    repo: AccessPolicyRepository = Depends(get_policy_repo),
) -> dict:
    body = (await request.body()).decode("utf-8")
    row = await repo.set_for_project(namespace, project, body)
    return {"policy_id": str(row.policy_id), "namespace": namespace, "project": project}
