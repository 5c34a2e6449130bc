"""
Core data models.

These mirror the rows owned by the identity provider and the data store.
The application only reads Sessions and Identities; Projects, Memberships
and Credentials are mutated through stored procedures.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from projecthub.core.utils import utc_now


# =============================================================================
# Enums
# =============================================================================


class ProjectRole(str, Enum):
    """Role a user has within a specific project."""

    OWNER = "owner"      # Full control, can delete project and rotate keys
    ADMIN = "admin"      # Can manage members, settings, read credentials
    MEMBER = "member"    # Regular collaborator
    VIEWER = "viewer"    # Read-only access


class ProjectStatus(str, Enum):
    """Lifecycle status of a project's schema."""

    PENDING = "pending"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class CredentialType(str, Enum):
    """Kinds of API credential issued per project."""

    ANON_KEY = "anon_key"
    SERVICE_KEY = "service_key"
    JWT_SECRET = "jwt_secret"


# =============================================================================
# Identity & Session
# =============================================================================


class Identity(BaseModel):
    """A user as known to the identity provider."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    """
    A session issued by the identity provider.

    Tokens are never logged; ``repr`` hides them.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_at: datetime | None = None
    user: Identity | None = None

    @property
    def identity_id(self) -> str | None:
        return self.user.id if self.user else None


# =============================================================================
# Project
# =============================================================================


class Project(BaseModel):
    """A tenant project backed by its own database schema."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str | None = None
    owner_id: str
    schema_name: str
    database_url: str | None = None
    api_url: str | None = None
    status: ProjectStatus = ProjectStatus.PENDING
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Membership(BaseModel):
    """The role a user holds within a project."""

    model_config = ConfigDict(extra="ignore")

    project_id: str
    user_id: str
    role: ProjectRole
    invited_by: str | None = None
    invited_at: datetime = Field(default_factory=utc_now)
    joined_at: datetime | None = None

    # Joined identity, present when the store embeds it
    user: Identity | None = None


class Credential(BaseModel):
    """
    An API credential for a project.

    Credentials are rotated, not mutated: regeneration deactivates the
    current row and inserts a new one.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    project_id: str
    credential_type: CredentialType
    credential_value: str
    is_active: bool = True
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None


class ProjectTemplate(BaseModel):
    """A starting schema a project can be provisioned from."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str | None = None
    category: str | None = None
    schema_structure: dict[str, Any] = Field(default_factory=dict)
    is_public: bool = True
    is_system: bool = False
