"""
Project routes.

    GET    /api/projects               list the caller's projects
    POST   /api/projects               provision a new project
    GET    /api/projects/{project_id}  project details (any member)
    PATCH  /api/projects/{project_id}  rename / describe (owner, admin)
    DELETE /api/projects/{project_id}  delete (owner only)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from projecthub import errors
from projecthub.auth import (
    AuthContext,
    Capability,
    require_capability,
    require_owner,
    require_roles,
    require_session,
)
from projecthub.auth.policies import get_store
from projecthub.core.models import ProjectRole
from projecthub.storage.base import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


# =============================================================================
# Request Models
# =============================================================================


class CreateProjectRequest(BaseModel):
    id: str = Field(min_length=1, max_length=63, pattern=r"^[a-z0-9-]+$")
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    template_id: str | None = Field(default=None, max_length=63)


class UpdateProjectRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


# =============================================================================
# Routes
# =============================================================================


@router.get("")
async def list_projects(
    ctx: AuthContext = Depends(require_session()),
    store: ProjectStore = Depends(get_store),
):
    """Projects the caller belongs to, newest first."""
    projects = await store.list_projects(ctx.user_id)
    return {"projects": projects}


@router.post("", status_code=201)
async def create_project(
    data: CreateProjectRequest,
    ctx: AuthContext = Depends(require_session()),
    store: ProjectStore = Depends(get_store),
):
    """
    Provision a new project owned by the caller.

    The provisioning procedure creates the schema, the owner membership and
    the initial credentials. A refusal from it (e.g. the id is taken) is a
    400 with the procedure's message.
    """
    logger.info(f"Provisioning project {data.id} for {ctx.user_id}")

    result = await store.provision_project(
        project_id=data.id,
        name=data.name,
        owner_id=ctx.user_id,
        template_id=data.template_id,
    )
    if not result.success:
        raise errors.ValidationError(result.message or "Failed to provision project")

    if data.description:
        project = await store.update_project(data.id, {"description": data.description})
    else:
        project = await store.get_project(data.id)

    if project is None:
        raise errors.UpstreamFailure(f"Project {data.id} created but failed to retrieve")

    return {"success": True, "project": project}


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    ctx: AuthContext = Depends(require_capability(Capability.PROJECT_READ)),
    store: ProjectStore = Depends(get_store),
):
    """Get a project by ID, with the caller's permissions on it."""
    project = ctx.project or await store.get_project(project_id)
    if project is None:
        raise errors.NotFound("Project not found")

    return {"project": project, "permissions": ctx.permissions()}


@router.patch("/{project_id}")
async def update_project(
    project_id: str,
    data: UpdateProjectRequest,
    ctx: AuthContext = Depends(
        require_roles(ProjectRole.OWNER, ProjectRole.ADMIN, message="Unauthorized")
    ),
    store: ProjectStore = Depends(get_store),
):
    """Update name and/or description."""
    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise errors.ValidationError("Nothing to update")

    project = await store.update_project(project_id, fields)
    if project is None:
        raise errors.NotFound("Project not found")

    return {"project": project}


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    ctx: AuthContext = Depends(require_owner("Only project owner can delete")),
    store: ProjectStore = Depends(get_store),
):
    """Delete a project and its schema. Owner only."""
    logger.info(f"Deleting project {project_id} at the request of {ctx.user_id}")

    result = await store.delete_project(project_id)
    if not result.success:
        raise errors.UpstreamFailure(result.message or "Failed to delete project")

    return {"success": True}
