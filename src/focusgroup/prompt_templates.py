"""Jinja2 template management for agent prompts.

Priority:
1. the configured ``prompts_dir`` (user overrides)
2. src/focusgroup/prompts/ (package defaults)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

logger = logging.getLogger(__name__)

# Package default prompts directory
PACKAGE_PROMPTS_DIR = Path(__file__).parent / "prompts"


def _pretty_json(value: Any) -> str:
    """Serialize prompt context; pydantic models are dumped first."""
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    elif isinstance(value, list):
        value = [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in value]
    return json.dumps(value, ensure_ascii=False, indent=2)


def _build_environment(search_paths: list[Path]) -> Environment:
    env = Environment(
        loader=FileSystemLoader(search_paths),
        autoescape=select_autoescape(enabled_extensions=()),
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )
    env.filters["pretty_json"] = _pretty_json
    return env


# Default environment (package prompts only)
DEFAULT_ENVIRONMENT = _build_environment([PACKAGE_PROMPTS_DIR])


def create_prompt_environment(prompts_dir: Path | None = None) -> Environment:
    """Create Jinja2 environment with fallback prompt directories.

    Templates found in ``prompts_dir`` win; anything missing there falls back to
    the packaged prompts, so a user can override a single template.

    Args:
        prompts_dir: Custom prompts directory, ignored when it does not exist

    Returns:
        Configured Jinja2 Environment with fallback search paths

    """
    search_paths: list[Path] = []
    if prompts_dir and prompts_dir.is_dir():
        search_paths.append(prompts_dir)
        logger.info("Custom prompts directory: %s", prompts_dir)
    elif prompts_dir:
        logger.warning("Prompts directory %s does not exist, using package prompts", prompts_dir)

    search_paths.append(PACKAGE_PROMPTS_DIR)
    logger.debug("Prompt search paths: %s", search_paths)
    return _build_environment(search_paths)


def render_prompt(
    template_name: str,
    *,
    env: Environment | None = None,
    **context: Any,
) -> str:
    """Render ``template_name`` with ``context``.

    Uses ``env`` when given, otherwise the package defaults.
    """
    template = (env or DEFAULT_ENVIRONMENT).get_template(template_name)
    return template.render(**context).strip()


__all__ = [
    "DEFAULT_ENVIRONMENT",
    "PACKAGE_PROMPTS_DIR",
    "create_prompt_environment",
    "render_prompt",
]
