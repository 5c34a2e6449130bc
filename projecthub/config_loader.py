"""
Built-in resource loader.

Loads the YAML resources shipped inside the package (currently the
default project templates).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml

from projecthub.core.models import ProjectTemplate

DATA_DIR = Path(__file__).parent / "data"


def load_templates(path: Path | str | None = None) -> list[ProjectTemplate]:
    """Load project templates from a YAML file with a top-level ``templates`` list."""
    path = Path(path) if path else DATA_DIR / "templates.yaml"
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return [ProjectTemplate.model_validate(raw) for raw in data.get("templates", [])]


@lru_cache
def default_templates() -> tuple[ProjectTemplate, ...]:
    """The packaged templates, parsed once."""
    return tuple(load_templates())
