"""Message renderer (strict placeholder substitution)."""

from __future__ import annotations

from string import Template
from typing import Any


class MessageRenderer:
    """Render notification templates with strict placeholder rules."""

    def render(self, template: str, context: dict[str, Any]) -> str:
        """Render a message template.

        Args:
            template: Message template containing ${var} placeholders.
            context: Mapping of variable names to values.

        Returns:
            Rendered message.

        Raises:
            ValueError: If any template variables are missing from the context.
        """
        try:
            return Template(template).substitute({k: "" if v is None else v for k, v in context.items()})
        except KeyError as exc:
            raise ValueError(f'Missing message variable: {exc}') from exc
