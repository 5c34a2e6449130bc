"""
In-memory project store for development and tests.

Works without any external services. The stored procedures are emulated
with the same argument names and the same one-row array results the
database returns, so responses still go through schema validation.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from projecthub.core.models import (
    Credential,
    CredentialType,
    Membership,
    Project,
    ProjectRole,
    ProjectStatus,
    ProjectTemplate,
)
from projecthub.core.utils import generate_id, generate_secret, schema_name_for, utc_now
from projecthub.errors import UpstreamFailure
from projecthub.storage.base import ProjectStore
from projecthub.storage.procedures import (
    ADD_MEMBER,
    DELETE_PROJECT,
    PROVISION_PROJECT,
    REGENERATE_CREDENTIALS,
    REMOVE_MEMBER,
    UPDATE_MEMBER_ROLE,
)


def _row(success: bool, message: str, **extra: Any) -> list[dict[str, Any]]:
    return [{"success": success, "message": message, **extra}]


class MemoryProjectStore(ProjectStore):
    """In-memory store. Not shared between processes."""

    def __init__(self, api_url: str = "http://localhost:54321"):
        self.api_url = api_url
        self._projects: dict[str, Project] = {}
        self._members: dict[tuple[str, str], Membership] = {}
        self._credentials: list[Credential] = []
        self._templates: dict[str, ProjectTemplate] = {}
        self._procedures: dict[str, Callable[..., Awaitable[Any]]] = {
            PROVISION_PROJECT.name: self._provision_new_project,
            DELETE_PROJECT.name: self._delete_project,
            REGENERATE_CREDENTIALS.name: self._regenerate_credentials,
            ADD_MEMBER.name: self._add_project_member,
            UPDATE_MEMBER_ROLE.name: self._update_member_role,
            REMOVE_MEMBER.name: self._remove_project_member,
        }

    # =========================================================================
    # Seeding
    # =========================================================================

    def put_project(self, project: Project) -> Project:
        self._projects[project.id] = project
        return project

    def put_membership(self, membership: Membership) -> Membership:
        self._members[(membership.project_id, membership.user_id)] = membership
        return membership

    def put_credential(self, credential: Credential) -> Credential:
        self._credentials.append(credential)
        return credential

    def put_template(self, template: ProjectTemplate) -> ProjectTemplate:
        self._templates[template.id] = template
        return template

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_projects(self, user_id: str) -> list[Project]:
        ids = {pid for (pid, uid) in self._members if uid == user_id}
        projects = [
            p for p in self._projects.values()
            if p.id in ids and p.status != ProjectStatus.DELETED
        ]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    async def get_project(self, project_id: str) -> Project | None:
        project = self._projects.get(project_id)
        if project is None or project.status == ProjectStatus.DELETED:
            return None
        return project

    async def get_membership(self, project_id: str, user_id: str) -> Membership | None:
        return self._members.get((project_id, user_id))

    async def list_members(self, project_id: str) -> list[Membership]:
        members = [m for (pid, _), m in self._members.items() if pid == project_id]
        return sorted(members, key=lambda m: m.invited_at)

    async def list_active_credentials(self, project_id: str) -> list[Credential]:
        return [
            c for c in self._credentials
            if c.project_id == project_id and c.is_active
        ]

    async def list_public_templates(self) -> list[ProjectTemplate]:
        return [t for t in self._templates.values() if t.is_public]

    # =========================================================================
    # Writes
    # =========================================================================

    async def update_project(self, project_id: str, fields: dict[str, Any]) -> Project | None:
        project = await self.get_project(project_id)
        if project is None:
            return None
        updated = project.model_copy(update={**fields, "updated_at": utc_now()})
        self._projects[project_id] = updated
        return updated

    async def call_procedure(self, name: str, args: dict[str, Any]) -> Any:
        handler = self._procedures.get(name)
        if handler is None:
            raise UpstreamFailure(f"Unknown procedure: {name}")
        return await handler(**args)

    # =========================================================================
    # Procedures
    # =========================================================================

    async def _provision_new_project(
        self,
        p_project_id: str,
        p_project_name: str,
        p_owner_id: str,
        p_template_id: str | None = None,
    ) -> list[dict[str, Any]]:
        if p_project_id in self._projects:
            return _row(False, f"Project {p_project_id} already exists", project_id=p_project_id)

        schema_name = schema_name_for(p_project_id)
        now = utc_now()
        self._projects[p_project_id] = Project(
            id=p_project_id,
            name=p_project_name,
            owner_id=p_owner_id,
            schema_name=schema_name,
            api_url=self.api_url,
            status=ProjectStatus.ACTIVE,
            settings={"template_id": p_template_id} if p_template_id else {},
            created_at=now,
            updated_at=now,
        )
        self.put_membership(Membership(
            project_id=p_project_id,
            user_id=p_owner_id,
            role=ProjectRole.OWNER,
            invited_at=now,
            joined_at=now,
        ))
        for credential_type in CredentialType:
            self._issue_credential(p_project_id, credential_type, p_owner_id)

        return _row(True, "Project provisioned", project_id=p_project_id, schema_name=schema_name)

    async def _delete_project(self, p_project_id: str) -> list[dict[str, Any]]:
        project = await self.get_project(p_project_id)
        if project is None:
            return _row(False, "Project not found")

        self._projects[p_project_id] = project.model_copy(
            update={"status": ProjectStatus.DELETED, "updated_at": utc_now()}
        )
        for key in [k for k in self._members if k[0] == p_project_id]:
            del self._members[key]
        for credential in self._credentials:
            if credential.project_id == p_project_id:
                credential.is_active = False

        return _row(True, "Project deleted")

    async def _regenerate_credentials(
        self,
        p_project_id: str,
        p_credential_type: str,
    ) -> list[dict[str, Any]]:
        project = await self.get_project(p_project_id)
        if project is None:
            return _row(False, "Project not found")

        credential_type = CredentialType(p_credential_type)
        for credential in self._credentials:
            if (
                credential.project_id == p_project_id
                and credential.credential_type == credential_type
                and credential.is_active
            ):
                credential.is_active = False

        issued = self._issue_credential(p_project_id, credential_type, project.owner_id)
        return _row(True, "Credential regenerated", new_credential=issued.credential_value)

    async def _add_project_member(
        self,
        p_project_id: str,
        p_user_id: str,
        p_role: str,
        p_invited_by: str | None = None,
    ) -> list[dict[str, Any]]:
        if await self.get_project(p_project_id) is None:
            return _row(False, "Project not found")
        if (p_project_id, p_user_id) in self._members:
            return _row(False, "User is already a member")

        now = utc_now()
        self.put_membership(Membership(
            project_id=p_project_id,
            user_id=p_user_id,
            role=ProjectRole(p_role),
            invited_by=p_invited_by,
            invited_at=now,
            joined_at=now,
        ))
        return _row(True, "Member added")

    async def _update_member_role(
        self,
        p_project_id: str,
        p_user_id: str,
        p_new_role: str,
    ) -> list[dict[str, Any]]:
        member = self._members.get((p_project_id, p_user_id))
        if member is None:
            return _row(False, "Member not found")

        new_role = ProjectRole(p_new_role)
        if member.role == ProjectRole.OWNER and new_role != ProjectRole.OWNER:
            return _row(False, "Transfer ownership before demoting the owner")

        if new_role == ProjectRole.OWNER and member.role != ProjectRole.OWNER:
            # One owner per project: the previous owner steps down to admin
            for other in self._members.values():
                if other.project_id == p_project_id and other.role == ProjectRole.OWNER:
                    other.role = ProjectRole.ADMIN
            project = self._projects[p_project_id]
            self._projects[p_project_id] = project.model_copy(
                update={"owner_id": p_user_id, "updated_at": utc_now()}
            )

        member.role = new_role
        return _row(True, "Role updated")

    async def _remove_project_member(self, p_project_id: str, p_user_id: str) -> list[dict[str, Any]]:
        member = self._members.get((p_project_id, p_user_id))
        if member is None:
            return _row(False, "Member not found")
        if member.role == ProjectRole.OWNER:
            return _row(False, "Cannot remove the project owner")

        del self._members[(p_project_id, p_user_id)]
        return _row(True, "Member removed")

    def _issue_credential(
        self,
        project_id: str,
        credential_type: CredentialType,
        created_by: str | None,
    ) -> Credential:
        return self.put_credential(Credential(
            id=generate_id("cred"),
            project_id=project_id,
            credential_type=credential_type,
            credential_value=generate_secret(),
            is_active=True,
            created_by=created_by,
        ))
