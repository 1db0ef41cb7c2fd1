"""
Base class for the server-rendered dashboard components.

Components build HTML in plain Python; every value that originates from a
user (file names, display names, categories) goes through `escape`.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all salaysay UI components."""

    def render(self) -> str:
        """Return the component as an HTML string."""
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[str]) -> str:
        """HTML-escape `text`; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Join CSS classes, adding each keyword whose value is truthy.

        Example:
            >>> Component.classes("badge", badge_approved=True, muted=False)
            'badge badge_approved'
        """
        parts = [a for a in args if a]
        parts.extend(key for key, value in conditionals.items() if value)
        return " ".join(parts)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Render keyword arguments as HTML attributes.

        `class_`/`for_` lose the trailing underscore, inner underscores become
        hyphens (`data_task_id` -> `data-task-id`), True renders a boolean
        attribute and False/None are skipped.
        """
        result = []
        for key, value in attrs.items():
            if key.endswith("_"):
                key = key[:-1]
            else:
                key = key.replace("_", "-")
            if value is True:
                result.append(key)
            elif value is not False and value is not None:
                result.append(f'{key}="{html.escape(str(value))}"')
        return " ".join(result)
