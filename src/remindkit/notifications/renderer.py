"""Jinja2 template renderer for outbound messages.

Resolves templates with a two-tier loader:
1. User-specified ``templates_path`` (overrides)
2. Built-in templates shipped with the package

Template names per rule template ``<name>``:

* WhatsApp: ``<name>_message.txt``
* Email: ``<name>_subject.txt`` and ``<name>_body.html``
"""

from __future__ import annotations

from typing import Any

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    select_autoescape,
)


class TemplateRenderer:
    """Renders message text, email subjects and email bodies."""

    def __init__(self, templates_path: str | None = None) -> None:
        loaders: list[BaseLoader] = []
        if templates_path:
            loaders.append(FileSystemLoader(templates_path))
        loaders.append(PackageLoader("remindkit.notifications", "templates"))

        self._env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(enabled_extensions=("html",)),
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

    def render_text(self, template: str, context: dict[str, Any]) -> str:
        """Render a plain-text chat message."""
        return self._env.get_template(f"{template}_message.txt").render(**context).strip()

    def render_email(self, template: str, context: dict[str, Any]) -> tuple[str, str]:
        """Render ``(subject, body_html)`` for an email template."""
        subject_tpl = self._env.get_template(f"{template}_subject.txt")
        body_tpl = self._env.get_template(f"{template}_body.html")

        # Subjects are a single header line.
        subject = " ".join(subject_tpl.render(**context).split())
        body = body_tpl.render(**context)
        return subject, body
