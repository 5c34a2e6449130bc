"""
Authentication and authorization.

Design principles:
1. One gate in front of every route (guard.py), fail-closed
2. One resolver for "who is this" (session.py), never raises on bad input
3. One authorize() for "may they do this" (policies.py), called before
   every project-scoped read or mutation
4. Roles are ordered; a capability granted to a role is granted to
   every role above it (roles.py)
"""

from projecthub.auth.context import AuthContext
from projecthub.auth.guard import (
    GuardAction,
    GuardDecision,
    RouteClass,
    RouteGuardMiddleware,
    RoutePolicy,
)
from projecthub.auth.policies import (
    Authorized,
    Denied,
    OwnerOnly,
    Policy,
    RoleAllowList,
    RoleThreshold,
    authorize,
    require,
    require_capability,
    require_owner,
    require_roles,
    require_session,
)
from projecthub.auth.roles import Capability, role_at_least
from projecthub.auth.session import (
    Authenticated,
    ResolveError,
    SessionResolver,
    Unauthenticated,
)
from projecthub.auth.routes import router as auth_router

__all__ = [
    # Main interface
    "require",
    "require_session",
    "require_roles",
    "require_owner",
    "require_capability",
    "authorize",
    "AuthContext",
    # Policies
    "Policy",
    "RoleThreshold",
    "RoleAllowList",
    "OwnerOnly",
    "Authorized",
    "Denied",
    "Capability",
    "role_at_least",
    # Session
    "SessionResolver",
    "Authenticated",
    "Unauthenticated",
    "ResolveError",
    # Guard
    "RouteGuardMiddleware",
    "RoutePolicy",
    "RouteClass",
    "GuardAction",
    "GuardDecision",
    # Router
    "auth_router",
]
