# =============================================================================
# Identity Provider Client
# =============================================================================
#
# Talks to a GoTrue-compatible auth service (the /auth/v1 API of the hosted
# backend). Two capabilities are consumed:
#   - validate session token  -> Identity or failure
#   - exchange credentials    -> Session
#
# Setup:
#   IDENTITY_URL=https://<ref>.example.co
#   IDENTITY_ANON_KEY=...      (public)
#   IDENTITY_SERVICE_KEY=...   (server only, admin lookups)
#
# One client is constructed at app startup and injected via app.state.
# It is never a module-level singleton.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pydantic

from projecthub.config import Settings
from projecthub.core.models import Identity, Session
from projecthub.core.utils import utc_now
from projecthub.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class InvalidSession(Exception):
    """The provider rejected the token or credentials."""

    def __init__(self, message: str = "Invalid session", status_code: int = 401):
        self.status_code = status_code
        super().__init__(message)


# Provider statuses that mean "your token/credentials are bad", as opposed
# to "the provider is broken"
_REJECTION_STATUSES = {400, 401, 403, 404, 422}

_ADMIN_PAGE_SIZE = 200
_ADMIN_MAX_PAGES = 50


class IdentityClient:
    """
    Async client for the identity provider.

    Every call is bounded by ``settings.identity_timeout_seconds``; a
    timeout surfaces as ``UpstreamFailure`` like any other transport error.
    """

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
    # Session validation
    # -------------------------------------------------------------------------

    async def get_user(self, access_token: str) -> Identity:
        """
        Validate an access token and return who it belongs to.

        Raises:
            InvalidSession: token rejected (expired, revoked, garbage)
            UpstreamFailure: provider unreachable or misbehaving
        """
        data = await self._request(
            "GET",
            "/user",
            headers=self._headers(bearer=access_token),
        )
        return self._parse_identity(data)

    async def refresh_session(self, refresh_token: str) -> Session:
        """Trade a refresh token for a new session."""
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            headers=self._headers(),
        )
        return self._parse_session(data)

    # -------------------------------------------------------------------------
    # Credential exchange
    # -------------------------------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Exchange email + password for a session."""
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        return self._parse_session(data)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> Session | None:
        """
        Register a new account.

        Returns a session when the provider signs the user straight in,
        or None when it requires email confirmation first.
        """
        data = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata or {}},
            headers=self._headers(),
        )
        if not data.get("access_token"):
            return None
        return self._parse_session(data)

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session server-side. Rejections are ignored."""
        try:
            await self._request(
                "POST",
                "/logout",
                headers=self._headers(bearer=access_token),
            )
        except InvalidSession:
            logger.debug("Sign-out of an already invalid session")

    # -------------------------------------------------------------------------
    # Admin (service key)
    # -------------------------------------------------------------------------

    async def find_user_by_email(self, email: str) -> Identity | None:
        """Look up an identity by email using the service key."""
        if not self.settings.identity_service_key:
            raise UpstreamFailure("Identity service key not configured")

        wanted = email.strip().lower()
        headers = self._headers(bearer=self.settings.identity_service_key, service=True)

        for page in range(1, _ADMIN_MAX_PAGES + 1):
            data = await self._request(
                "GET",
                "/admin/users",
                params={"page": page, "per_page": _ADMIN_PAGE_SIZE},
                headers=headers,
            )
            users = data.get("users")
            if not isinstance(users, list):
                raise UpstreamFailure("Malformed admin user listing")
            for raw in users:
                if str(raw.get("email", "")).lower() == wanted:
                    return self._parse_identity(raw)
            if len(users) < _ADMIN_PAGE_SIZE:
                return None

        logger.warning(f"User lookup gave up after {_ADMIN_MAX_PAGES} pages")
        raise UpstreamFailure("User directory exceeds admin lookup limit")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _headers(self, bearer: str | None = None, service: bool = False) -> dict[str, str]:
        key = self.settings.identity_service_key if service else self.settings.identity_anon_key
        headers = {"apikey": key}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self.settings.auth_url}{path}"
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamFailure(f"Identity provider timed out on {path}") from e
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"Identity provider unreachable: {e}") from e

        if response.status_code in _REJECTION_STATUSES:
            raise InvalidSession(_error_message(response), status_code=response.status_code)
        if response.status_code >= 400:
            raise UpstreamFailure(
                f"Identity provider returned {response.status_code} on {path}"
            )
        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFailure(f"Identity provider sent non-JSON on {path}") from e
        if not isinstance(data, dict):
            raise UpstreamFailure(f"Identity provider sent unexpected payload on {path}")
        return data

    @staticmethod
    def _parse_identity(data: dict[str, Any]) -> Identity:
        try:
            return Identity.model_validate(data)
        except pydantic.ValidationError as e:
            raise UpstreamFailure("Malformed identity payload") from e

    @staticmethod
    def _parse_session(data: dict[str, Any]) -> Session:
        try:
            expires_at: datetime | None = None
            if data.get("expires_at"):
                expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
            elif data.get("expires_in"):
                expires_at = utc_now() + timedelta(seconds=int(data["expires_in"]))

            return Session(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expires_at=expires_at,
                user=Identity.model_validate(data["user"]) if data.get("user") else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamFailure("Malformed session payload") from e


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return "Invalid session"
    if isinstance(data, dict):
        for key in ("error_description", "msg", "message", "error"):
            if data.get(key):
                return str(data[key])
    return "Invalid session"
