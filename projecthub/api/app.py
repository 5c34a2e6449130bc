"""
FastAPI application for the project dashboard.

This is the HTTP surface the dashboard frontend talks to. Every request
passes the route guard first; project-scoped handlers then authorize the
caller's role before touching the store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from projecthub.api import credentials, members, pages, projects, templates
from projecthub.auth import RouteGuardMiddleware, SessionResolver, auth_router
from projecthub.config import Settings, get_settings
from projecthub.errors import AppError, UpstreamFailure
from projecthub.integrations.identity import IdentityClient
from projecthub.integrations.sentry import capture_exception, init_sentry
from projecthub.storage.base import ProjectStore
from projecthub.storage.rest import RestProjectStore

logger = logging.getLogger(__name__)


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    identity: IdentityClient | None = None,
    store: ProjectStore | None = None,
) -> FastAPI:
    """
    Build the application.

    Clients passed in are used as-is and left open on shutdown; anything
    not passed in is constructed at startup and closed on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = []

        init_sentry(settings)

        if app.state.identity is None:
            app.state.identity = IdentityClient(settings)
            owned.append(app.state.identity)
        if app.state.store is None:
            app.state.store = RestProjectStore(settings)
            owned.append(app.state.store)
        if app.state.session_resolver is None:
            app.state.session_resolver = SessionResolver(app.state.identity, settings)

        logger.info(f"projecthub API starting in {settings.environment} mode")

        yield

        for client in owned:
            await client.aclose()
        logger.info("projecthub API shut down")

    app = FastAPI(
        title="projecthub API",
        description="Multi-tenant project dashboard: projects, credentials and members",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.identity = identity
    app.state.store = store
    app.state.session_resolver = SessionResolver(identity, settings) if identity else None

    # Guard first so CORS wraps it
    app.add_middleware(RouteGuardMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(projects.router)
    app.include_router(credentials.router)
    app.include_router(members.router)
    app.include_router(templates.router)
    app.include_router(pages.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "projecthub-api"}

    return app


# =============================================================================
# Error Handling
# =============================================================================


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, UpstreamFailure):
            logger.error(f"{request.method} {request.url.path} upstream failure: {exc.message}")
            capture_exception(exc, path=request.url.path)
        return JSONResponse(exc.to_body(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return JSONResponse({"error": "Invalid input", "details": details}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"error": str(exc.detail)},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"{request.method} {request.url.path} failed")
        capture_exception(exc, path=request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


app = create_app()
