"""
Session resolution - "who is making this request?"

The resolver reads the session token from the ``Authorization`` header or
the session cookies, and asks the identity provider whose it is. It never
raises for a missing or malformed token; the outcome is always one of:

    Authenticated(identity)   the provider vouched for the token
    Unauthenticated(reason)   no token, garbage token, or rejected token
    ResolveError(reason)      the provider could not be asked (fail-closed)

Refresh is a side channel. If the access token is at or near expiry and a
refresh token is present, the resolver trades it once, validates the new
access token, and remembers the new session so the middleware can write it
back as cookies. A failed refresh never raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, NamedTuple, Union

import jwt
from starlette.requests import HTTPConnection
from starlette.responses import Response

from projecthub.config import Settings
from projecthub.core.models import Identity, Session
from projecthub.errors import UpstreamFailure
from projecthub.integrations.identity import IdentityClient, InvalidSession

logger = logging.getLogger(__name__)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class Authenticated:
    identity: Identity
    access_token: str
    # New session obtained by refreshing; to be written back as cookies
    refreshed: Session | None = None

    @property
    def is_authenticated(self) -> bool:
        return True


@dataclass(frozen=True)
class Unauthenticated:
    reason: str = "No session"
    # Stale cookies that should be removed from the client
    clear_cookies: bool = False

    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True)
class ResolveError:
    reason: str

    @property
    def is_authenticated(self) -> bool:
        return False


SessionResult = Union[Authenticated, Unauthenticated, ResolveError]


# =============================================================================
# Token extraction
# =============================================================================


class SessionTokens(NamedTuple):
    access: str | None
    refresh: str | None
    # The access token came from the cookie jar rather than a header
    from_cookie: bool


def extract_tokens(
    cookies: Mapping[str, str],
    headers: Mapping[str, str],
    settings: Settings,
) -> SessionTokens:
    """
    Pull the session tokens out of a request.

    A well-formed bearer header wins over the access cookie. A bearer value
    that is not a JWT is ignored so it cannot shadow a good cookie session.
    Blank values count as absent.
    """
    refresh = (cookies.get(settings.refresh_cookie_name) or "").strip() or None

    auth_header = headers.get("authorization") or ""
    if auth_header[:7].lower() == "bearer ":
        bearer = auth_header[7:].strip()
        if bearer and _is_jwt(bearer):
            return SessionTokens(bearer, refresh, from_cookie=False)

    access = (cookies.get(settings.access_cookie_name) or "").strip() or None
    return SessionTokens(access, refresh, from_cookie=True)


def token_expiry(token: str) -> datetime | None:
    """
    Read the ``exp`` claim without verifying the signature.

    Only used to decide whether to refresh before asking the provider;
    the provider remains the authority on validity.

    Raises:
        jwt.InvalidTokenError: not a JWT at all
    """
    claims = jwt.decode(token, options={"verify_signature": False})
    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(int(exp), tz=timezone.utc)


def _is_jwt(token: str) -> bool:
    try:
        token_expiry(token)
    except (jwt.InvalidTokenError, ValueError, TypeError):
        return False
    return True


# =============================================================================
# Resolver
# =============================================================================


class SessionResolver:
    """
    Resolves a request's session against the identity provider.

    Stateless: safe to share across requests. Constructed once per app with
    an explicitly injected ``IdentityClient``.
    """

    def __init__(self, identity: IdentityClient, settings: Settings):
        self.identity = identity
        self.settings = settings

    async def resolve(self, conn: HTTPConnection) -> SessionResult:
        tokens = extract_tokens(conn.cookies, conn.headers, self.settings)
        return await self.resolve_tokens(tokens.access, tokens.refresh, from_cookie=tokens.from_cookie)

    async def resolve_tokens(
        self,
        access_token: str | None,
        refresh_token: str | None = None,
        from_cookie: bool = True,
    ) -> SessionResult:
        """
        Resolve a pair of tokens.

        ``from_cookie`` says where the access token came from. Cookies are
        only marked for clearing when a cookie-borne token turned out stale;
        a bad header never logs a browser out.
        """
        if not access_token and not refresh_token:
            return Unauthenticated("No session")

        expires_at = None
        if access_token:
            try:
                expires_at = token_expiry(access_token)
            except (jwt.InvalidTokenError, ValueError, TypeError):
                logger.debug("Discarding malformed access token")
                access_token = None

        refreshed: Session | None = None
        if refresh_token and self._needs_refresh(access_token, expires_at):
            refreshed = await self._try_refresh(refresh_token)
            if refreshed is not None:
                access_token = refreshed.access_token

        if not access_token:
            return Unauthenticated(
                "No valid session",
                clear_cookies=from_cookie or refresh_token is not None,
            )

        try:
            identity = await asyncio.wait_for(
                self.identity.get_user(access_token),
                timeout=self.settings.identity_timeout_seconds,
            )
        except InvalidSession:
            return Unauthenticated(
                "Session rejected",
                clear_cookies=from_cookie or refreshed is not None,
            )
        except asyncio.TimeoutError:
            return ResolveError("Identity provider timed out")
        except UpstreamFailure as e:
            return ResolveError(e.message)

        return Authenticated(identity=identity, access_token=access_token, refreshed=refreshed)

    def _needs_refresh(self, access_token: str | None, expires_at: datetime | None) -> bool:
        if access_token is None:
            return True
        if expires_at is None:
            return False
        remaining = (expires_at - datetime.now(timezone.utc)).total_seconds()
        return remaining <= self.settings.session_refresh_margin_seconds

    async def _try_refresh(self, refresh_token: str) -> Session | None:
        try:
            return await asyncio.wait_for(
                self.identity.refresh_session(refresh_token),
                timeout=self.settings.identity_timeout_seconds,
            )
        except InvalidSession:
            logger.debug("Refresh token rejected")
        except asyncio.TimeoutError:
            logger.warning("Session refresh timed out")
        except UpstreamFailure as e:
            logger.warning(f"Session refresh failed: {e.message}")
        return None


# =============================================================================
# Cookies
# =============================================================================


def set_session_cookies(response: Response, session: Session, settings: Settings) -> None:
    """Write a session onto a response. Same session in, same headers out."""
    common = dict(
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    response.set_cookie(
        settings.access_cookie_name,
        session.access_token,
        max_age=settings.cookie_max_age_seconds,
        **common,
    )
    if session.refresh_token:
        response.set_cookie(
            settings.refresh_cookie_name,
            session.refresh_token,
            max_age=settings.cookie_max_age_seconds,
            **common,
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.access_cookie_name, path="/")
    response.delete_cookie(settings.refresh_cookie_name, path="/")


def apply_session_side_effects(response: Response, result: SessionResult, settings: Settings) -> None:
    """
    Write refreshed cookies, or clear stale ones, per the resolution result.

    A handler that already set the session cookie (login, logout) wins.
    """
    prefix = f"{settings.access_cookie_name}="
    if any(c.startswith(prefix) for c in response.headers.getlist("set-cookie")):
        return

    if isinstance(result, Authenticated) and result.refreshed is not None:
        set_session_cookies(response, result.refreshed, settings)
    elif isinstance(result, Unauthenticated) and result.clear_cookies:
        clear_session_cookies(response, settings)
