"""
Template routes.

    GET /api/templates  public templates, or the built-in set when the store
                        has none or cannot be read
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from projecthub import errors
from projecthub.auth import AuthContext, require_session
from projecthub.auth.policies import get_store
from projecthub.config_loader import default_templates
from projecthub.storage.base import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("")
async def list_templates(
    ctx: AuthContext = Depends(require_session()),
    store: ProjectStore = Depends(get_store),
):
    try:
        templates = await store.list_public_templates()
    except errors.UpstreamFailure as e:
        logger.warning(f"Falling back to built-in templates: {e.message}")
        templates = []

    if not templates:
        templates = list(default_templates())

    return {"templates": templates}
