"""Per-record property templates.

Processor options such as the target index or the operation name may
depend on the record being processed. Those options are Jinja2 templates
rendered against the record's attributes:

    index: "logs-{{ attributes.env }}"
    operation: "{{ attributes['es.op'] }}"

Missing attributes render as the empty string, so a template that depends
on an absent attribute yields "" and the caller's own emptiness checks
decide what happens to the record. Strings without template markup are
returned unchanged without touching Jinja2.
"""

from __future__ import annotations

from collections.abc import Mapping

from jinja2 import TemplateSyntaxError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

__all__ = [
    "AttributeTemplate",
    "TemplateError",
    "compile_optional",
    "is_template",
]

_TEMPLATE_MARKERS = ("{{", "{%", "{#")

# Shared sandbox: templates are operator-authored but rendered against
# record attributes that arrive from upstream systems.
_ENV = SandboxedEnvironment(autoescape=False, keep_trailing_newline=True)


def is_template(source: str) -> bool:
    """True when source contains Jinja2 markup."""
    return any(marker in source for marker in _TEMPLATE_MARKERS)


class TemplateError(Exception):
    """Error in template compilation or rendering (including sandbox violations)."""


class AttributeTemplate:
    """A property value that may reference record attributes.

    Example:
        template = AttributeTemplate("logs-{{ attributes.env }}")
        template.render({"env": "prod"})  # "logs-prod"
        template.render({})  # "logs-"
    """

    def __init__(self, source: str) -> None:
        self._source = source
        self._is_literal = not is_template(source)
        if self._is_literal:
            self._template = None
            return
        try:
            self._template = _ENV.from_string(source)
        except TemplateSyntaxError as e:
            raise TemplateError(f"Invalid template syntax in {source!r}: {e}") from e

    @property
    def source(self) -> str:
        return self._source

    @property
    def is_literal(self) -> bool:
        """True when the value has no template markup."""
        return self._is_literal

    def render(self, attributes: Mapping[str, str]) -> str:
        """Render against one record's attributes.

        Raises:
            TemplateError: If rendering fails (sandbox violation, bad filter, etc.)
        """
        if self._template is None:
            return self._source
        try:
            return self._template.render(attributes=dict(attributes))
        except SecurityError as e:
            raise TemplateError(f"Sandbox violation in {self._source!r}: {e}") from e
        except Exception as e:
            raise TemplateError(f"Template rendering failed for {self._source!r}: {e}") from e

    def __repr__(self) -> str:
        return f"AttributeTemplate({self._source!r})"


def compile_optional(source: str | None) -> AttributeTemplate | None:
    """Compile a template, passing None through."""
    if source is None:
        return None
    return AttributeTemplate(source)
