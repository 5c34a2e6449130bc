"""
Credential routes.

    GET  /api/projects/{project_id}/credentials             (owner, admin)
    POST /api/projects/{project_id}/credentials/regenerate  (owner)

Regeneration never overwrites a secret in place: the procedure deactivates
the current credential of that type and issues a new one.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from projecthub import errors
from projecthub.auth import AuthContext, require_roles
from projecthub.auth.policies import get_store
from projecthub.core.models import Credential, CredentialType, ProjectRole
from projecthub.storage.base import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects/{project_id}/credentials", tags=["credentials"])


class RegenerateRequest(BaseModel):
    credential_type: CredentialType


class CredentialsDisplay(BaseModel):
    api_url: str
    anon_key: Credential | None = None
    service_key: Credential | None = None
    jwt_secret: Credential | None = None
    database_url: str | None = None


def _newest_by_type(credentials: list[Credential]) -> dict[CredentialType, Credential]:
    newest: dict[CredentialType, Credential] = {}
    for credential in credentials:
        current = newest.get(credential.credential_type)
        if current is None or credential.created_at > current.created_at:
            newest[credential.credential_type] = credential
    return newest


@router.get("")
async def get_credentials(
    project_id: str,
    request: Request,
    ctx: AuthContext = Depends(
        require_roles(ProjectRole.OWNER, ProjectRole.ADMIN, message="Unauthorized")
    ),
    store: ProjectStore = Depends(get_store),
):
    """The project's active credentials and connection details."""
    project = ctx.project or await store.get_project(project_id)
    if project is None:
        raise errors.NotFound("Project not found")

    active = _newest_by_type(await store.list_active_credentials(project_id))

    display = CredentialsDisplay(
        api_url=project.api_url or request.app.state.settings.identity_url,
        anon_key=active.get(CredentialType.ANON_KEY),
        service_key=active.get(CredentialType.SERVICE_KEY),
        jwt_secret=active.get(CredentialType.JWT_SECRET),
        database_url=project.database_url,
    )
    return {"credentials": display}


@router.post("/regenerate")
async def regenerate_credential(
    project_id: str,
    data: RegenerateRequest,
    ctx: AuthContext = Depends(
        require_roles(ProjectRole.OWNER, message="Only project owner can regenerate credentials")
    ),
    store: ProjectStore = Depends(get_store),
):
    """Rotate one credential type. Owner only."""
    logger.info(
        f"Regenerating {data.credential_type.value} for project {project_id} "
        f"at the request of {ctx.user_id}"
    )

    result = await store.regenerate_credential(project_id, data.credential_type)
    if not result.success:
        raise errors.UpstreamFailure(result.message or "Failed to regenerate credential")

    return {"success": True, "new_credential": result.new_credential}
