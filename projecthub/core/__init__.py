"""
Core module - data models and shared helpers.

This module contains:
- models: Identity, Session, Project, Membership, Credential, ProjectTemplate
- utils: Shared utility functions
"""

from projecthub.core.models import (
    Credential,
    CredentialType,
    Identity,
    Membership,
    Project,
    ProjectRole,
    ProjectStatus,
    ProjectTemplate,
    Session,
)
from projecthub.core.utils import generate_id, generate_secret, utc_now

__all__ = [
    "Credential",
    "CredentialType",
    "Identity",
    "Membership",
    "Project",
    "ProjectRole",
    "ProjectStatus",
    "ProjectTemplate",
    "Session",
    "generate_id",
    "generate_secret",
    "utc_now",
]
