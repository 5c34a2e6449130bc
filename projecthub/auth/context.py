"""
The caller as seen by a project-scoped handler.

Built by the ``require_*`` dependencies after authorization has passed:
the identity from the session, plus the membership (and, for owner checks,
the project row) read while authorizing. Handlers use it to answer
follow-up questions such as "may this caller also change ownership?"
without another store round-trip.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from projecthub.auth.roles import Capability, get_capabilities, has_capability
from projecthub.core.models import Identity, Membership, Project, ProjectRole


@dataclass
class AuthContext:
    """
    An authorized caller, optionally bound to one project.

        ctx: AuthContext = Depends(require_capability(Capability.PROJECT_READ))
        if ctx.can(Capability.PROJECT_EDIT):
            ...
    """

    # Who
    identity: Identity
    access_token: str = field(repr=False)

    # What project (if applicable)
    project_id: str | None = None
    membership: Membership | None = None
    project: Project | None = None

    @property
    def user_id(self) -> str:
        return self.identity.id

    @property
    def project_role(self) -> ProjectRole | None:
        return self.membership.role if self.membership else None

    @property
    def is_owner(self) -> bool:
        if self.project is not None and self.project.owner_id == self.user_id:
            return True
        return self.project_role == ProjectRole.OWNER

    def can(self, capability: Capability | str) -> bool:
        """Unknown capability names are simply not granted."""
        try:
            capability = Capability(capability)
        except ValueError:
            return False
        return has_capability(capability, self.project_role)

    def permissions(self) -> dict[str, object]:
        """Summary for clients deciding which controls to show."""
        return {
            "role": self.project_role.value if self.project_role else None,
            "can_edit": self.can(Capability.PROJECT_EDIT),
            "can_delete": self.can(Capability.PROJECT_DELETE),
            "can_manage_members": self.can(Capability.MEMBERS_MANAGE),
            "can_view_credentials": self.can(Capability.CREDENTIALS_READ),
            "capabilities": sorted(c.value for c in get_capabilities(self.project_role)),
        }
