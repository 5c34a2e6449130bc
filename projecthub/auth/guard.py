"""
Route guard - runs before every route match.

One step, no state carried between requests: classify the path, resolve
the session if the bucket cares, decide.

    bucket        authenticated          not authenticated
    ----------    -------------------    ---------------------------
    auth-only     redirect to landing    pass
    root*         redirect to landing    redirect to login
    public        pass                   pass
    protected     pass                   redirect to login
    api           pass                   401 {"error": "Unauthorized"}
    unclassified  pass                   pass

    * only when ROOT_POLICY=redirect; otherwise "/" is public.

Buckets are tried in that order and the first match wins, so a path is
never judged by more than one bucket. Anything that blows up while
classifying or resolving ends in the protected-route redirect to login.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from projecthub.auth.session import (
    ResolveError,
    SessionResolver,
    SessionResult,
    apply_session_side_effects,
)
from projecthub.config import Settings

logger = logging.getLogger(__name__)


API_PREFIX = "/api/"

# Reachable without a session even though they live under /api/
DEFAULT_PUBLIC_PATHS = frozenset({
    "/health",
    "/api/auth/login",
    "/api/auth/register",
})


class RouteClass(str, Enum):
    AUTH_ONLY = "auth_only"
    ROOT = "root"
    PUBLIC = "public"
    PROTECTED = "protected"
    API = "api"
    UNCLASSIFIED = "unclassified"


class GuardAction(str, Enum):
    PASS = "pass"
    REDIRECT = "redirect"
    REJECT = "reject"


@dataclass(frozen=True)
class GuardDecision:
    action: GuardAction
    location: str | None = None
    status_code: int | None = None

    @classmethod
    def passthrough(cls) -> GuardDecision:
        return cls(GuardAction.PASS)

    @classmethod
    def redirect(cls, location: str) -> GuardDecision:
        return cls(GuardAction.REDIRECT, location=location, status_code=307)

    @classmethod
    def unauthorized(cls) -> GuardDecision:
        return cls(GuardAction.REJECT, status_code=401)


@dataclass(frozen=True)
class RoutePolicy:
    """The path tables the guard classifies against."""

    login_path: str = "/login"
    register_path: str = "/register"
    landing_path: str = "/projects"
    protected_prefixes: tuple[str, ...] = ("/projects", "/templates", "/settings")
    public_paths: frozenset[str] = DEFAULT_PUBLIC_PATHS
    root_is_public: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> RoutePolicy:
        return cls(
            login_path=settings.login_path,
            register_path=settings.register_path,
            landing_path=settings.landing_path,
            protected_prefixes=tuple(settings.protected_prefixes_list),
            root_is_public=settings.root_policy != "redirect",
        )

    @property
    def auth_only_paths(self) -> frozenset[str]:
        return frozenset({self.login_path, self.register_path})

    def classify(self, path: str) -> RouteClass:
        if path in self.auth_only_paths:
            return RouteClass.AUTH_ONLY
        if path == "/":
            return RouteClass.PUBLIC if self.root_is_public else RouteClass.ROOT
        if path in self.public_paths:
            return RouteClass.PUBLIC
        if any(_under(path, prefix) for prefix in self.protected_prefixes):
            return RouteClass.PROTECTED
        if path.startswith(API_PREFIX) or path == API_PREFIX.rstrip("/"):
            return RouteClass.API
        return RouteClass.UNCLASSIFIED

    def decide(self, route_class: RouteClass, authenticated: bool) -> GuardDecision:
        if route_class is RouteClass.AUTH_ONLY:
            if authenticated:
                return GuardDecision.redirect(self.landing_path)
            return GuardDecision.passthrough()

        if route_class is RouteClass.ROOT:
            return GuardDecision.redirect(self.landing_path if authenticated else self.login_path)

        if route_class is RouteClass.PROTECTED:
            if authenticated:
                return GuardDecision.passthrough()
            return GuardDecision.redirect(self.login_path)

        if route_class is RouteClass.API:
            if authenticated:
                return GuardDecision.passthrough()
            return GuardDecision.unauthorized()

        return GuardDecision.passthrough()


def needs_session(route_class: RouteClass) -> bool:
    """Public and unclassified paths never touch the identity provider."""
    return route_class not in (RouteClass.PUBLIC, RouteClass.UNCLASSIFIED)


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


# =============================================================================
# Middleware
# =============================================================================


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """
    Applies the route policy to every request.

    The session resolver is taken from ``app.state.session_resolver``; the
    resolved result is left on ``request.state.session`` so API dependencies
    do not make a second round-trip.
    """

    def __init__(self, app, settings: Settings, policy: RoutePolicy | None = None):
        super().__init__(app)
        self.settings = settings
        self.policy = policy or RoutePolicy.from_settings(settings)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # CORS preflight carries no cookies
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        result: SessionResult | None = None

        try:
            route_class = self.policy.classify(path)
            if needs_session(route_class):
                resolver: SessionResolver = request.app.state.session_resolver
                result = await resolver.resolve(request)
                request.state.session = result
            authenticated = result is not None and result.is_authenticated
            decision = self.policy.decide(route_class, authenticated)
        except Exception:
            logger.exception(f"Route guard failed on {path}, redirecting to login")
            return RedirectResponse(self.policy.login_path, status_code=307)

        if isinstance(result, ResolveError):
            logger.warning(f"{path} [{route_class.value}] session unresolved: {result.reason}")
        elif result is not None and not result.is_authenticated:
            logger.debug(f"{path} [{route_class.value}] unauthenticated: {result.reason}")
        logger.debug(f"{path} [{route_class.value}] -> {decision.action.value}")

        if decision.action is GuardAction.PASS:
            response = await call_next(request)
        elif decision.action is GuardAction.REDIRECT:
            response = RedirectResponse(decision.location, status_code=decision.status_code)
        else:
            response = JSONResponse({"error": "Unauthorized"}, status_code=decision.status_code)

        if result is not None:
            apply_session_side_effects(response, result, self.settings)
        return response
