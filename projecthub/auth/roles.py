"""
Roles and capabilities.

This defines WHAT each project role may do, not HOW we check it.
The actual checking happens in policies.py.

Roles are totally ordered: viewer < member < admin < owner. Every
capability is granted from a minimum role upward, so anything a role
may do is also allowed for every role above it.
"""

from __future__ import annotations

from enum import Enum

from projecthub.core.models import ProjectRole


ROLE_ORDER: list[ProjectRole] = [
    ProjectRole.VIEWER,
    ProjectRole.MEMBER,
    ProjectRole.ADMIN,
    ProjectRole.OWNER,
]


class Capability(str, Enum):
    """Actions checked against a caller's project role."""

    PROJECT_READ = "project.read"
    PROJECT_EDIT = "project.edit"
    PROJECT_DELETE = "project.delete"

    MEMBERS_READ = "members.read"
    MEMBERS_MANAGE = "members.manage"

    CREDENTIALS_READ = "credentials.read"
    CREDENTIALS_REGENERATE = "credentials.regenerate"


# Minimum role for each capability
CAPABILITY_THRESHOLDS: dict[Capability, ProjectRole] = {
    Capability.PROJECT_READ: ProjectRole.VIEWER,
    Capability.PROJECT_EDIT: ProjectRole.ADMIN,
    Capability.PROJECT_DELETE: ProjectRole.OWNER,
    Capability.MEMBERS_READ: ProjectRole.VIEWER,
    Capability.MEMBERS_MANAGE: ProjectRole.ADMIN,
    Capability.CREDENTIALS_READ: ProjectRole.ADMIN,
    Capability.CREDENTIALS_REGENERATE: ProjectRole.OWNER,
}


def role_rank(role: ProjectRole | str) -> int:
    """Position of ``role`` in the ordering (viewer is 0)."""
    return ROLE_ORDER.index(ProjectRole(role))


def role_at_least(role: ProjectRole | str | None, minimum: ProjectRole | str) -> bool:
    """True when ``role`` is ``minimum`` or anything above it."""
    if role is None:
        return False
    return role_rank(role) >= role_rank(minimum)


def get_capabilities(role: ProjectRole | None) -> set[Capability]:
    """All capabilities granted to ``role`` (empty for no membership)."""
    if role is None:
        return set()
    return {
        capability
        for capability, minimum in CAPABILITY_THRESHOLDS.items()
        if role_at_least(role, minimum)
    }


def has_capability(capability: Capability | str, role: ProjectRole | None) -> bool:
    """Check if a role has a specific capability."""
    return role_at_least(role, CAPABILITY_THRESHOLDS[Capability(capability)])
