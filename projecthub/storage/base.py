"""
Storage abstraction layer.

All reads and writes of projects, memberships, credentials and templates
go through ``ProjectStore``. Mutations other than plain project edits are
stored procedures, reached through a single ``call_procedure`` seam so
every implementation gets the same response validation.

Implementations:
- RestProjectStore   → PostgREST over HTTP (production)
- MemoryProjectStore → in-process dicts (development and tests)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from projecthub.core.models import (
    Credential,
    CredentialType,
    Membership,
    Project,
    ProjectRole,
    ProjectTemplate,
)
from projecthub.storage.procedures import (
    ADD_MEMBER,
    DELETE_PROJECT,
    PROVISION_PROJECT,
    REGENERATE_CREDENTIALS,
    REMOVE_MEMBER,
    UPDATE_MEMBER_ROLE,
    DeleteResult,
    MemberResult,
    Procedure,
    ProvisionResult,
    RegenerateResult,
    parse_result,
)


class Tables:
    """Standard table names."""

    PROJECTS = "projects"
    MEMBERS = "project_members"
    CREDENTIALS = "project_credentials"
    TEMPLATES = "project_templates"


class ProjectStore(ABC):
    """
    Storage for tenant projects and everything hanging off them.

    Reads return ``None`` for an absent single row rather than raising.
    Transport or shape problems raise ``UpstreamFailure``.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_projects(self, user_id: str) -> list[Project]:
        """Non-deleted projects the user is a member of, newest first."""
        pass

    @abstractmethod
    async def get_project(self, project_id: str) -> Project | None:
        """A project by ID. Deleted projects count as absent."""
        pass

    @abstractmethod
    async def get_membership(self, project_id: str, user_id: str) -> Membership | None:
        pass

    @abstractmethod
    async def list_members(self, project_id: str) -> list[Membership]:
        pass

    @abstractmethod
    async def list_active_credentials(self, project_id: str) -> list[Credential]:
        pass

    @abstractmethod
    async def list_public_templates(self) -> list[ProjectTemplate]:
        pass

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def update_project(self, project_id: str, fields: dict[str, Any]) -> Project | None:
        """Patch name/description. Returns the updated row, None if absent."""
        pass

    @abstractmethod
    async def call_procedure(self, name: str, args: dict[str, Any]) -> Any:
        """Invoke a stored procedure and return its raw, unvalidated result."""
        pass

    async def _invoke(self, procedure: Procedure, args: dict[str, Any]):
        raw = await self.call_procedure(procedure.name, args)
        return parse_result(procedure, raw)

    # -------------------------------------------------------------------------
    # Procedures
    # -------------------------------------------------------------------------

    async def provision_project(
        self,
        project_id: str,
        name: str,
        owner_id: str,
        template_id: str | None = None,
    ) -> ProvisionResult:
        return await self._invoke(PROVISION_PROJECT, {
            "p_project_id": project_id,
            "p_project_name": name,
            "p_template_id": template_id,
            "p_owner_id": owner_id,
        })

    async def delete_project(self, project_id: str) -> DeleteResult:
        return await self._invoke(DELETE_PROJECT, {"p_project_id": project_id})

    async def regenerate_credential(
        self,
        project_id: str,
        credential_type: CredentialType,
    ) -> RegenerateResult:
        return await self._invoke(REGENERATE_CREDENTIALS, {
            "p_project_id": project_id,
            "p_credential_type": CredentialType(credential_type).value,
        })

    async def add_member(
        self,
        project_id: str,
        user_id: str,
        role: ProjectRole,
        invited_by: str | None = None,
    ) -> MemberResult:
        return await self._invoke(ADD_MEMBER, {
            "p_project_id": project_id,
            "p_user_id": user_id,
            "p_role": ProjectRole(role).value,
            "p_invited_by": invited_by,
        })

    async def update_member_role(
        self,
        project_id: str,
        user_id: str,
        role: ProjectRole,
    ) -> MemberResult:
        return await self._invoke(UPDATE_MEMBER_ROLE, {
            "p_project_id": project_id,
            "p_user_id": user_id,
            "p_new_role": ProjectRole(role).value,
        })

    async def remove_member(self, project_id: str, user_id: str) -> MemberResult:
        return await self._invoke(REMOVE_MEMBER, {
            "p_project_id": project_id,
            "p_user_id": user_id,
        })

    async def aclose(self) -> None:
        """Release any held connections."""
        pass
