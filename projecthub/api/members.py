"""
Membership routes.

    GET    /api/projects/{project_id}/members            (any member)
    POST   /api/projects/{project_id}/members            (admin+)
    PATCH  /api/projects/{project_id}/members/{user_id}  (admin+)
    DELETE /api/projects/{project_id}/members/{user_id}  (admin+)

New members are never added as owner; ownership only moves through a role
update made by the current owner.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, EmailStr

from projecthub import errors
from projecthub.auth import AuthContext, Capability, require_capability
from projecthub.auth.policies import get_store
from projecthub.core.models import ProjectRole
from projecthub.integrations.identity import IdentityClient
from projecthub.storage.base import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects/{project_id}/members", tags=["members"])


class AddMemberRequest(BaseModel):
    email: EmailStr
    role: Literal["admin", "member", "viewer"]


class UpdateRoleRequest(BaseModel):
    role: ProjectRole


def get_identity(request: Request) -> IdentityClient:
    return request.app.state.identity


@router.get("")
async def list_members(
    project_id: str,
    ctx: AuthContext = Depends(require_capability(Capability.MEMBERS_READ)),
    store: ProjectStore = Depends(get_store),
):
    members = await store.list_members(project_id)
    return {"members": members}


@router.post("", status_code=201)
async def add_member(
    project_id: str,
    data: AddMemberRequest,
    ctx: AuthContext = Depends(require_capability(Capability.MEMBERS_MANAGE)),
    store: ProjectStore = Depends(get_store),
    identity: IdentityClient = Depends(get_identity),
):
    """Add an existing user, found by email, to the project."""
    target = await identity.find_user_by_email(data.email)
    if target is None:
        raise errors.NotFound("User not found")

    result = await store.add_member(
        project_id=project_id,
        user_id=target.id,
        role=ProjectRole(data.role),
        invited_by=ctx.user_id,
    )
    if not result.success:
        raise errors.ValidationError(result.message or "Failed to add member")

    member = await store.get_membership(project_id, target.id)
    if member is None:
        raise errors.UpstreamFailure(f"Member {target.id} added but failed to retrieve")

    logger.info(f"{ctx.user_id} added {target.id} to {project_id} as {data.role}")
    return {"member": member.model_copy(update={"user": target})}


@router.patch("/{user_id}")
async def update_member_role(
    project_id: str,
    user_id: str,
    data: UpdateRoleRequest,
    ctx: AuthContext = Depends(require_capability(Capability.MEMBERS_MANAGE)),
    store: ProjectStore = Depends(get_store),
):
    """
    Change a member's role.

    Only the owner may hand out ``owner`` or change the owner's own role.
    """
    target = await store.get_membership(project_id, user_id)
    if target is None:
        raise errors.NotFound("Member not found")

    touches_owner = data.role == ProjectRole.OWNER or target.role == ProjectRole.OWNER
    if touches_owner and not ctx.is_owner:
        raise errors.Forbidden("Only the project owner can change ownership")

    result = await store.update_member_role(project_id, user_id, data.role)
    if not result.success:
        raise errors.ValidationError(result.message or "Failed to update role")

    member = await store.get_membership(project_id, user_id)
    if member is None:
        raise errors.NotFound("Member not found")

    logger.info(f"{ctx.user_id} set {user_id} to {data.role.value} in {project_id}")
    return {"member": member}


@router.delete("/{user_id}")
async def remove_member(
    project_id: str,
    user_id: str,
    ctx: AuthContext = Depends(require_capability(Capability.MEMBERS_MANAGE)),
    store: ProjectStore = Depends(get_store),
):
    target = await store.get_membership(project_id, user_id)
    if target is None:
        raise errors.NotFound("Member not found")
    if target.role == ProjectRole.OWNER:
        raise errors.Forbidden("Cannot remove the project owner")

    result = await store.remove_member(project_id, user_id)
    if not result.success:
        raise errors.ValidationError(result.message or "Failed to remove member")

    logger.info(f"{ctx.user_id} removed {user_id} from {project_id}")
    return {"success": True}
