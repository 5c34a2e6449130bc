"""
Shared utility functions.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.

    Args:
        prefix: Optional prefix (e.g., "mem", "cred")

    Returns:
        A unique ID like "cred_a1b2c3d4e5f6"
    """
    uid = str(uuid.uuid4())[:12]
    return f"{prefix}_{uid}" if prefix else uid


def generate_secret(nbytes: int = 32) -> str:
    """Random URL-safe secret for credential values."""
    return secrets.token_urlsafe(nbytes)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def schema_name_for(project_id: str) -> str:
    """Schema a project's tables live in (``my-app`` -> ``proj_my_app``)."""
    return "proj_" + project_id.replace("-", "_")
