"""
Tests for authorize() and the policy types.
"""

import pytest

from projecthub.auth.policies import (
    Authorized,
    Denied,
    OwnerOnly,
    RoleAllowList,
    RoleThreshold,
    authorize,
)
from projecthub.core.models import Identity, ProjectRole


def identity(user_id):
    return Identity(id=user_id, email=f"{user_id}@example.com")


class TestRoleThreshold:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id,allowed", [
        ("u-owner", True),
        ("u-admin", True),
        ("u-member", False),
        ("u-viewer", False),
        ("u-outsider", False),
    ])
    async def test_admin_threshold(self, store, user_id, allowed):
        result = await authorize(
            "acme",
            identity(user_id),
            RoleThreshold(ProjectRole.ADMIN),
            store.get_membership,
        )
        assert isinstance(result, Authorized) is allowed

    @pytest.mark.asyncio
    async def test_non_member_reason(self, store):
        result = await authorize(
            "acme", identity("u-outsider"), RoleThreshold(ProjectRole.VIEWER), store.get_membership
        )
        assert result == Denied("No access to this project")

    @pytest.mark.asyncio
    async def test_custom_message(self, store):
        result = await authorize(
            "acme",
            identity("u-viewer"),
            RoleThreshold(ProjectRole.MEMBER, "Members only"),
            store.get_membership,
        )
        assert result == Denied("Members only")

    @pytest.mark.asyncio
    async def test_unknown_project_denied(self, store):
        result = await authorize(
            "nope", identity("u-owner"), RoleThreshold(ProjectRole.VIEWER), store.get_membership
        )
        assert isinstance(result, Denied)


class TestRoleAllowList:
    @pytest.mark.asyncio
    async def test_exact_roles_only(self, store):
        policy = RoleAllowList([ProjectRole.OWNER])
        owner = await authorize("acme", identity("u-owner"), policy, store.get_membership)
        admin = await authorize("acme", identity("u-admin"), policy, store.get_membership)
        assert isinstance(owner, Authorized)
        assert owner.membership.role == ProjectRole.OWNER
        assert isinstance(admin, Denied)


class TestOwnerOnly:
    @pytest.mark.asyncio
    async def test_owner_by_owner_id(self, store):
        result = await authorize(
            "acme", identity("u-owner"), OwnerOnly(), store.get_membership, store.get_project
        )
        assert isinstance(result, Authorized)
        assert result.project.id == "acme"

    @pytest.mark.asyncio
    async def test_admin_is_not_owner(self, store):
        result = await authorize(
            "acme", identity("u-admin"), OwnerOnly("nope"), store.get_membership, store.get_project
        )
        assert result == Denied("nope")

    @pytest.mark.asyncio
    async def test_membership_reread_every_call(self, store):
        """A role change takes effect on the very next check."""
        policy = RoleThreshold(ProjectRole.ADMIN)
        before = await authorize("acme", identity("u-member"), policy, store.get_membership)
        await store.update_member_role("acme", "u-member", ProjectRole.ADMIN)
        after = await authorize("acme", identity("u-member"), policy, store.get_membership)
        assert isinstance(before, Denied)
        assert isinstance(after, Authorized)
