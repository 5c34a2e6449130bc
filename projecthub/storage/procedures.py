"""
Stored procedures and their response schemas.

The procedures themselves live in the database and are opaque here. What
this module pins down is the SHAPE each one must answer with. A response
that does not match its schema is treated as an upstream failure rather
than trusted.

Postgres set-returning functions come back as a one-row array; that
wrapper is unwrapped before validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, model_validator

from projecthub.errors import UpstreamFailure


# =============================================================================
# Response schemas
# =============================================================================


class ProcedureResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    message: str | None = None


class ProvisionResult(ProcedureResult):
    project_id: str | None = None
    schema_name: str | None = None

    @model_validator(mode="after")
    def _schema_on_success(self) -> ProvisionResult:
        if self.success and not self.schema_name:
            raise ValueError("successful provisioning must name the schema")
        return self


class DeleteResult(ProcedureResult):
    pass


class RegenerateResult(ProcedureResult):
    new_credential: str | None = None

    @model_validator(mode="after")
    def _value_on_success(self) -> RegenerateResult:
        if self.success and not self.new_credential:
            raise ValueError("successful regeneration must return the new value")
        return self


class MemberResult(ProcedureResult):
    pass


# =============================================================================
# Procedure table
# =============================================================================


@dataclass(frozen=True)
class Procedure:
    name: str
    schema: type[ProcedureResult]


PROVISION_PROJECT = Procedure("provision_new_project", ProvisionResult)
DELETE_PROJECT = Procedure("delete_project", DeleteResult)
REGENERATE_CREDENTIALS = Procedure("regenerate_credentials", RegenerateResult)
ADD_MEMBER = Procedure("add_project_member", MemberResult)
UPDATE_MEMBER_ROLE = Procedure("update_member_role", MemberResult)
REMOVE_MEMBER = Procedure("remove_project_member", MemberResult)


def parse_result(procedure: Procedure, raw: Any) -> ProcedureResult:
    """
    Validate a raw procedure response against its schema.

    Raises:
        UpstreamFailure: wrong row count, wrong shape, or wrong types
    """
    if isinstance(raw, list):
        if len(raw) != 1:
            raise UpstreamFailure(
                f"{procedure.name} returned {len(raw)} rows, expected 1"
            )
        raw = raw[0]

    if not isinstance(raw, dict):
        raise UpstreamFailure(f"{procedure.name} returned {type(raw).__name__}, expected an object")

    try:
        return procedure.schema.model_validate(raw)
    except pydantic.ValidationError as e:
        raise UpstreamFailure(f"{procedure.name} response did not match schema: {e}") from e
