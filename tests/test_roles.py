"""
Tests for roles and capabilities.

Core principle: roles are ordered, and a higher role can do everything a
lower one can.
"""

import pytest

from projecthub.auth.context import AuthContext
from projecthub.auth.roles import (
    CAPABILITY_THRESHOLDS,
    ROLE_ORDER,
    Capability,
    get_capabilities,
    has_capability,
    role_at_least,
    role_rank,
)
from projecthub.core.models import Identity, Membership, Project, ProjectRole


class TestRoleOrdering:
    def test_order(self):
        assert ROLE_ORDER == [
            ProjectRole.VIEWER,
            ProjectRole.MEMBER,
            ProjectRole.ADMIN,
            ProjectRole.OWNER,
        ]

    def test_no_membership_never_satisfies(self):
        for minimum in ROLE_ORDER:
            assert not role_at_least(None, minimum)

    def test_accepts_plain_strings(self):
        assert role_at_least("admin", "member")
        assert not role_at_least("viewer", "member")

    def test_role_rank_follows_order(self):
        assert [role_rank(r) for r in ROLE_ORDER] == [0, 1, 2, 3]

    @pytest.mark.parametrize("capability", list(Capability))
    def test_capabilities_are_monotonic(self, capability):
        """Once a role may do something, every higher role may too."""
        granted = [has_capability(capability, role) for role in ROLE_ORDER]
        first = granted.index(True)
        assert all(granted[first:])
        assert not any(granted[:first])

    def test_every_capability_has_threshold(self):
        assert set(CAPABILITY_THRESHOLDS) == set(Capability)


class TestCapabilities:
    def test_owner_has_everything(self):
        assert get_capabilities(ProjectRole.OWNER) == set(Capability)

    def test_viewer_is_read_only(self):
        assert get_capabilities(ProjectRole.VIEWER) == {
            Capability.PROJECT_READ,
            Capability.MEMBERS_READ,
        }

    def test_admin_cannot_delete_or_rotate(self):
        caps = get_capabilities(ProjectRole.ADMIN)
        assert Capability.MEMBERS_MANAGE in caps
        assert Capability.CREDENTIALS_READ in caps
        assert Capability.PROJECT_DELETE not in caps
        assert Capability.CREDENTIALS_REGENERATE not in caps

    def test_no_role_no_capabilities(self):
        assert get_capabilities(None) == set()


class TestAuthContext:
    def _ctx(self, role=None, owner_id="someone-else"):
        identity = Identity(id="u1", email="u1@example.com")
        membership = Membership(project_id="p1", user_id="u1", role=role) if role else None
        project = Project(id="p1", name="P", owner_id=owner_id, schema_name="proj_p1")
        return AuthContext(
            identity=identity,
            access_token="token",
            project_id="p1",
            membership=membership,
            project=project,
        )

    def test_can_accepts_strings(self):
        ctx = self._ctx(ProjectRole.ADMIN)
        assert ctx.can("members.manage")
        assert not ctx.can("project.delete")
        assert not ctx.can("no.such.capability")

    def test_owner_by_project_owner_id(self):
        ctx = self._ctx(ProjectRole.MEMBER, owner_id="u1")
        assert ctx.is_owner

    def test_permissions_summary(self):
        perms = self._ctx(ProjectRole.MEMBER).permissions()
        assert perms["role"] == "member"
        assert perms["can_edit"] is False
        assert perms["can_manage_members"] is False
        assert perms["capabilities"] == ["members.read", "project.read"]

    def test_token_hidden_from_repr(self):
        assert "access_token" not in repr(self._ctx(ProjectRole.VIEWER))
