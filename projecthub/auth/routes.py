# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/auth/register - Create account (signs in if the provider allows)
#   POST /api/auth/login    - Exchange email + password for a session cookie
#   POST /api/auth/logout   - Revoke the session and clear cookies
#   GET  /api/auth/me       - Get current user
#
# Login and register are on the route guard's public list; logout and me
# sit behind it like any other /api/ path.
#
# =============================================================================

import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field

from projecthub import errors
from projecthub.auth.context import AuthContext
from projecthub.auth.policies import require_session
from projecthub.auth.session import clear_session_cookies, set_session_cookies
from projecthub.core.models import Identity
from projecthub.integrations.identity import IdentityClient, InvalidSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str | None = Field(default=None, max_length=100)


class UserResponse(BaseModel):
    id: str
    email: str | None


class RegisterResponse(BaseModel):
    user: UserResponse | None
    confirmation_required: bool


def _identity_client(request: Request) -> IdentityClient:
    return request.app.state.identity


def _user(identity: Identity | None) -> UserResponse | None:
    if identity is None:
        return None
    return UserResponse(id=identity.id, email=identity.email)


# =============================================================================
# Public Endpoints
# =============================================================================


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(data: RegisterRequest, request: Request, response: Response):
    """
    Create a new account.

    Sets session cookies when the provider signs the user in straight away.
    """
    identity = _identity_client(request)
    metadata = {"full_name": data.full_name} if data.full_name else {}

    try:
        session = await identity.sign_up(data.email, data.password, metadata)
    except InvalidSession as e:
        raise errors.ValidationError(str(e))

    if session is None:
        return RegisterResponse(user=None, confirmation_required=True)

    set_session_cookies(response, session, request.app.state.settings)
    return RegisterResponse(user=_user(session.user), confirmation_required=False)


@router.post("/login")
async def login(data: LoginRequest, request: Request, response: Response):
    """
    Authenticate and set session cookies.
    """
    identity = _identity_client(request)
    try:
        session = await identity.sign_in_with_password(data.email, data.password)
    except InvalidSession:
        raise errors.Unauthenticated("Invalid email or password")

    set_session_cookies(response, session, request.app.state.settings)
    return {"user": _user(session.user)}


# =============================================================================
# Protected Endpoints
# =============================================================================


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    ctx: AuthContext = Depends(require_session()),
):
    """
    Revoke the session with the provider and clear cookies.
    """
    try:
        await _identity_client(request).sign_out(ctx.access_token)
    except errors.UpstreamFailure as e:
        # Cookies are cleared regardless; the token expires on its own
        logger.warning(f"Provider sign-out failed: {e.message}")

    clear_session_cookies(response, request.app.state.settings)
    return {"success": True}


@router.get("/me", response_model=UserResponse)
async def get_current_user(ctx: AuthContext = Depends(require_session())):
    """
    Get the current authenticated user.
    """
    return _user(ctx.identity)
