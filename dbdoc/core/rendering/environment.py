"""
Template Environment
====================

Shared Jinja2 environment for text artifacts. Templates only lay out the
envelope; statements and lines are built by the emitters.

``*.html`` templates (the documentation site) are autoescaped; the ``*.j2``
text templates are not.
"""

from functools import lru_cache
from pathlib import Path

import jinja2


@lru_cache(maxsize=1)
def get_template_environment() -> jinja2.Environment:
    """Create the Jinja2 environment once per process."""
    template_dir = Path(__file__).parent / "templates"
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(template_dir)),
        autoescape=jinja2.select_autoescape(["html", "xml"], default=False),
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=jinja2.StrictUndefined,
    )
    _register_template_functions(env)
    return env


def _register_template_functions(env: jinja2.Environment) -> None:
    """Register custom Jinja2 filters."""

    def or_dash(value: object) -> object:
        """Placeholder for empty table cells."""
        return "-" if value is None or value == "" else value

    env.filters["or_dash"] = or_dash


def render_template(name: str, **context: object) -> str:
    return get_template_environment().get_template(name).render(**context)
