"""Render Jinja2 templates into file bodies.

Processors only see the ``Renderer`` callable, a pure function of
template name and model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import jinja2

TEMPLATE_DIR = Path(__file__).parent / "templates"

Renderer = Callable[[str, dict[str, Any]], bytes]


def make_environment(template_dir: Path = TEMPLATE_DIR) -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=jinja2.StrictUndefined,
        autoescape=False,
    )
    # Python literal for strings, dicts and numbers embedded in generated code.
    env.filters["py"] = repr
    return env


class JinjaRenderer:
    """Renderer backed by a Jinja2 environment."""

    def __init__(self, env: jinja2.Environment | None = None) -> None:
        self.env = env or make_environment()

    def __call__(self, template_name: str, model: dict[str, Any]) -> bytes:
        template = self.env.get_template(template_name)
        return template.render(**model).encode("utf-8")
