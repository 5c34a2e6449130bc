"""
PostgREST-backed project store.

Rows are read from ``/rest/v1/<table>`` and procedures are invoked at
``/rest/v1/rpc/<name>``. The service key is used server-side only;
authorization is enforced by the API layer before any call lands here.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
import pydantic
from pydantic import BaseModel

from projecthub.config import Settings
from projecthub.core.models import (
    Credential,
    Membership,
    Project,
    ProjectStatus,
    ProjectTemplate,
)
from projecthub.core.utils import utc_now
from projecthub.errors import UpstreamFailure
from projecthub.storage.base import ProjectStore, Tables

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# PostgREST answers 400/409 when a procedure raises; that is the procedure
# saying no, not the store being broken
_PROCEDURE_REJECTIONS = {400, 409}


class RestProjectStore(ProjectStore):
    """Project store over the hosted backend's REST API."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.settings = settings
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.identity_timeout_seconds),
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_projects(self, user_id: str) -> list[Project]:
        rows = await self._select(Tables.MEMBERS, {
            "select": "project_id",
            "user_id": f"eq.{user_id}",
        })
        ids = sorted({row["project_id"] for row in rows if row.get("project_id")})
        if not ids:
            return []

        quoted = ",".join(f'"{pid}"' for pid in ids)
        rows = await self._select(Tables.PROJECTS, {
            "select": "*",
            "id": f"in.({quoted})",
            "status": f"neq.{ProjectStatus.DELETED.value}",
            "order": "created_at.desc",
        })
        return self._parse_all(Project, rows)

    async def get_project(self, project_id: str) -> Project | None:
        row = await self._select_one(Tables.PROJECTS, {
            "select": "*",
            "id": f"eq.{project_id}",
            "status": f"neq.{ProjectStatus.DELETED.value}",
        })
        return self._parse(Project, row) if row else None

    async def get_membership(self, project_id: str, user_id: str) -> Membership | None:
        row = await self._select_one(Tables.MEMBERS, {
            "select": "*",
            "project_id": f"eq.{project_id}",
            "user_id": f"eq.{user_id}",
        })
        return self._parse(Membership, row) if row else None

    async def list_members(self, project_id: str) -> list[Membership]:
        rows = await self._select(Tables.MEMBERS, {
            "select": "*",
            "project_id": f"eq.{project_id}",
            "order": "invited_at.asc",
        })
        return self._parse_all(Membership, rows)

    async def list_active_credentials(self, project_id: str) -> list[Credential]:
        rows = await self._select(Tables.CREDENTIALS, {
            "select": "*",
            "project_id": f"eq.{project_id}",
            "is_active": "eq.true",
            "order": "created_at.desc",
        })
        return self._parse_all(Credential, rows)

    async def list_public_templates(self) -> list[ProjectTemplate]:
        rows = await self._select(Tables.TEMPLATES, {
            "select": "*",
            "is_public": "eq.true",
            "order": "created_at.desc",
        })
        return self._parse_all(ProjectTemplate, rows)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def update_project(self, project_id: str, fields: dict[str, Any]) -> Project | None:
        payload = {**fields, "updated_at": utc_now().isoformat()}
        response = await self._send(
            "PATCH",
            f"/{Tables.PROJECTS}",
            params={"id": f"eq.{project_id}"},
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        rows = self._json_list(response)
        return self._parse(Project, rows[0]) if rows else None

    async def call_procedure(self, name: str, args: dict[str, Any]) -> Any:
        response = await self._send("POST", f"/rpc/{name}", json=args, allow=_PROCEDURE_REJECTIONS)

        if response.status_code in _PROCEDURE_REJECTIONS:
            message = _error_message(response)
            logger.info(f"Procedure {name} rejected: {message}")
            return [{"success": False, "message": message}]

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamFailure(f"Procedure {name} returned non-JSON") from e

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        key = self.settings.identity_service_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
        }

    async def _send(
        self,
        method: str,
        path: str,
        allow: set[int] | None = None,
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> httpx.Response:
        url = f"{self.settings.rest_url}{path}"
        try:
            response = await self.http.request(
                method,
                url,
                headers={**self._headers(), **(headers or {})},
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise UpstreamFailure(f"Data store timed out on {path}") from e
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"Data store unreachable: {e}") from e

        if response.status_code >= 400 and response.status_code not in (allow or set()):
            raise UpstreamFailure(
                f"Data store returned {response.status_code} on {path}: {_error_message(response)}"
            )
        return response

    async def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        response = await self._send("GET", f"/{table}", params=params)
        return self._json_list(response)

    async def _select_one(self, table: str, params: dict[str, str]) -> dict[str, Any] | None:
        rows = await self._select(table, {**params, "limit": "1"})
        return rows[0] if rows else None

    @staticmethod
    def _json_list(response: httpx.Response) -> list[dict[str, Any]]:
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFailure("Data store returned non-JSON") from e
        if not isinstance(data, list):
            raise UpstreamFailure("Data store returned an unexpected payload")
        return data

    @staticmethod
    def _parse(model: type[ModelT], row: dict[str, Any]) -> ModelT:
        try:
            return model.model_validate(row)
        except pydantic.ValidationError as e:
            raise UpstreamFailure(f"Malformed {model.__name__} row") from e

    @classmethod
    def _parse_all(cls, model: type[ModelT], rows: list[dict[str, Any]]) -> list[ModelT]:
        return [cls._parse(model, row) for row in rows]


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or str(response.status_code)
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)
