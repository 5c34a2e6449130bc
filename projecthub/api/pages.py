"""
Page routes.

The dashboard UI is rendered client-side; these only hand back the shell
for each page so the route guard has something to protect.
"""

from __future__ import annotations

from html import escape

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"], include_in_schema=False)


def _shell(title: str, page: str) -> HTMLResponse:
    return HTMLResponse(
        "<!doctype html><html><head>"
        f"<title>{escape(title)} | projecthub</title>"
        "</head><body>"
        f'<div id="root" data-page="{escape(page)}"></div>'
        "</body></html>"
    )


@router.get("/", response_class=HTMLResponse)
async def home():
    return _shell("Home", "home")


@router.get("/login", response_class=HTMLResponse)
async def login_page():
    return _shell("Sign in", "login")


@router.get("/register", response_class=HTMLResponse)
async def register_page():
    return _shell("Create account", "register")


@router.get("/projects", response_class=HTMLResponse)
async def projects_page():
    return _shell("Projects", "projects")


@router.get("/projects/new", response_class=HTMLResponse)
async def new_project_page():
    return _shell("New project", "projects/new")


@router.get("/projects/{project_id}", response_class=HTMLResponse)
async def project_page(project_id: str):
    return _shell("Project", f"projects/{project_id}")


@router.get("/templates", response_class=HTMLResponse)
async def templates_page():
    return _shell("Templates", "templates")


@router.get("/settings", response_class=HTMLResponse)
async def settings_page():
    return _shell("Settings", "settings")
