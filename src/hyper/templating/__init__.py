"""Templates rendered with jinja2."""

from hyper.templating.integration import create_environment, render_template, template_exists
from hyper.templating.returns import InlineTemplate, Template

__all__ = ["InlineTemplate", "Template", "create_environment", "render_template", "template_exists"]
