"""
Policies - the one place per-resource authorization happens.

Every project-scoped handler goes through ``authorize()`` before it
touches anything:

    ctx: AuthContext = Depends(require_capability(Capability.MEMBERS_MANAGE))

Design:
- ``authorize()`` is plain async code: (project, caller, policy, lookups)
  in, tagged ``Authorized`` / ``Denied`` out. No FastAPI involved.
- ``require_*()`` wrap it as FastAPI dependencies. They raise 401 when
  there is no session and 403 when the policy denies, so the handler body
  only ever runs for an authorized caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Union

from fastapi import Request

from projecthub import errors
from projecthub.auth.context import AuthContext
from projecthub.auth.roles import CAPABILITY_THRESHOLDS, Capability, role_at_least
from projecthub.auth.session import Authenticated, SessionResolver
from projecthub.core.models import Identity, Membership, Project, ProjectRole
from projecthub.storage.base import ProjectStore


MembershipLookup = Callable[[str, str], Awaitable[Union[Membership, None]]]
ProjectLookup = Callable[[str], Awaitable[Union[Project, None]]]


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class Authorized:
    membership: Membership | None
    project: Project | None = None

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    reason: str

    @property
    def allowed(self) -> bool:
        return False


Authorization = Union[Authorized, Denied]


# =============================================================================
# Policies
# =============================================================================


class Policy(ABC):
    """A rule deciding whether a caller may act on a project."""

    needs_project: bool = False

    @abstractmethod
    def check(
        self,
        identity: Identity,
        membership: Membership | None,
        project: Project | None,
    ) -> Authorization:
        pass


class RoleThreshold(Policy):
    """Caller's role must be ``min_role`` or higher."""

    def __init__(self, min_role: ProjectRole, message: str | None = None):
        self.min_role = ProjectRole(min_role)
        self.message = message

    def check(self, identity, membership, project) -> Authorization:
        if membership is None:
            return Denied(self.message or "No access to this project")
        if not role_at_least(membership.role, self.min_role):
            return Denied(self.message or f"Requires {self.min_role.value} role or higher")
        return Authorized(membership, project)

    def __repr__(self) -> str:
        return f"RoleThreshold({self.min_role.value})"


class RoleAllowList(Policy):
    """Caller's role must be one of ``roles`` exactly."""

    def __init__(self, roles: Iterable[ProjectRole], message: str | None = None):
        self.roles = frozenset(ProjectRole(r) for r in roles)
        self.message = message

    def check(self, identity, membership, project) -> Authorization:
        if membership is None or membership.role not in self.roles:
            return Denied(self.message or "Forbidden")
        return Authorized(membership, project)

    def __repr__(self) -> str:
        return f"RoleAllowList({sorted(r.value for r in self.roles)})"


class OwnerOnly(Policy):
    """Caller must own the project, by ``owner_id`` or by owner membership."""

    needs_project = True

    def __init__(self, message: str = "Only the project owner can do this"):
        self.message = message

    def check(self, identity, membership, project) -> Authorization:
        if project is not None and project.owner_id == identity.id:
            return Authorized(membership, project)
        if project is None and membership is not None and membership.role == ProjectRole.OWNER:
            return Authorized(membership, project)
        return Denied(self.message)

    def __repr__(self) -> str:
        return "OwnerOnly()"


async def authorize(
    project_id: str,
    identity: Identity,
    policy: Policy,
    lookup_membership: MembershipLookup,
    lookup_project: ProjectLookup | None = None,
) -> Authorization:
    """
    Decide whether ``identity`` may act on ``project_id`` under ``policy``.

    The membership row is always read fresh; nothing is cached between calls.
    """
    membership = await lookup_membership(project_id, identity.id)
    project = None
    if policy.needs_project and lookup_project is not None:
        project = await lookup_project(project_id)
    return policy.check(identity, membership, project)


# =============================================================================
# FastAPI dependencies
# =============================================================================


def get_store(request: Request) -> ProjectStore:
    return request.app.state.store


async def current_session(request: Request) -> Authenticated:
    """
    The request's authenticated session, or 401.

    Reuses what the route guard resolved; resolves on the spot for routes
    the guard does not cover.
    """
    result = getattr(request.state, "session", None)
    if result is None:
        resolver: SessionResolver = request.app.state.session_resolver
        result = await resolver.resolve(request)
        request.state.session = result
    if not isinstance(result, Authenticated):
        raise errors.Unauthenticated()
    return result


def require_session() -> Callable:
    """Just require authentication, no project involved."""

    async def dependency(request: Request) -> AuthContext:
        session = await current_session(request)
        return AuthContext(identity=session.identity, access_token=session.access_token)

    return dependency


def require(policy: Policy) -> Callable:
    """
    Require ``policy`` to hold on the ``project_id`` path parameter.

    Usage:
        @router.delete("/projects/{project_id}")
        async def delete_project(
            project_id: str,
            ctx: AuthContext = Depends(require(OwnerOnly())),
        ):
            ...
    """

    async def dependency(request: Request) -> AuthContext:
        session = await current_session(request)
        project_id = request.path_params.get("project_id")
        if not project_id:
            raise errors.ValidationError("Project context required")

        store = get_store(request)
        decision = await authorize(
            project_id,
            session.identity,
            policy,
            store.get_membership,
            store.get_project,
        )
        if isinstance(decision, Denied):
            if await store.get_project(project_id) is None:
                raise errors.NotFound("Project not found")
            raise errors.Forbidden(decision.reason)

        return AuthContext(
            identity=session.identity,
            access_token=session.access_token,
            project_id=project_id,
            membership=decision.membership,
            project=decision.project,
        )

    return dependency


def require_roles(*roles: ProjectRole, message: str | None = None) -> Callable:
    """Require one of an exact set of roles."""
    return require(RoleAllowList(roles, message))


def require_owner(message: str = "Only the project owner can do this") -> Callable:
    """Require project ownership."""
    return require(OwnerOnly(message))


def require_capability(capability: Capability | str, message: str | None = None) -> Callable:
    """Require whatever role the capability table asks for."""
    return require(RoleThreshold(CAPABILITY_THRESHOLDS[Capability(capability)], message))
