"""jinja2 environment setup.

The environment is created once, when the app freezes, and shared by
every request. ``url_for`` and ``url`` are registered as globals, and
the current request (when there is one) is available as ``request``.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from jinja2 import (
    BaseLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    TemplateNotFound,
    select_autoescape,
)

from hyper.config import AppConfig
from hyper.context import request_var
from hyper.templating.returns import InlineTemplate, Template


def create_environment(
    config: AppConfig,
    *,
    filters: dict[str, Callable[..., Any]] | None = None,
    globals_: dict[str, Any] | None = None,
) -> Environment:
    """Create a jinja2 Environment from app configuration."""
    loader: BaseLoader
    if config.template_dir is not None and Path(config.template_dir).is_dir():
        loader = FileSystemLoader(str(config.template_dir))
    else:
        loader = DictLoader({})
    env = Environment(
        loader=loader,
        autoescape=select_autoescape(default=config.autoescape, default_for_string=config.autoescape),
        auto_reload=config.debug,
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
    )
    if filters:
        env.filters.update(filters)
    if globals_:
        env.globals.update(globals_)
    return env


def template_exists(env: Environment, name: str) -> bool:
    """True if *name* can be loaded by *env*."""
    try:
        env.get_template(name)
    except TemplateNotFound:
        return False
    return True


def render_template(env: Environment, tpl: Template | InlineTemplate) -> str:
    """Render a file or inline template, adding ``request`` to the context."""
    context = dict(tpl.context)
    request = request_var.get(None)
    if request is not None:
        context.setdefault("request", request)
    if isinstance(tpl, InlineTemplate):
        return env.from_string(tpl.source).render(context)
    return env.get_template(tpl.name).render(context)
