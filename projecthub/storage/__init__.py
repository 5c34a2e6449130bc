"""
Storage abstractions.

- ProjectStore        → interface used by the API layer
- RestProjectStore    → PostgREST (tables + stored procedures)
- MemoryProjectStore  → in-process, for development and tests
"""

from projecthub.storage.base import ProjectStore, Tables
from projecthub.storage.memory import MemoryProjectStore
from projecthub.storage.procedures import (
    DeleteResult,
    MemberResult,
    ProcedureResult,
    ProvisionResult,
    RegenerateResult,
)
from projecthub.storage.rest import RestProjectStore

__all__ = [
    "ProjectStore",
    "Tables",
    "MemoryProjectStore",
    "RestProjectStore",
    "ProcedureResult",
    "ProvisionResult",
    "DeleteResult",
    "RegenerateResult",
    "MemberResult",
]
