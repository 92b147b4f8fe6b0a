"""Action config rendering: every string in an action's config is a Jinja2 template."""

from __future__ import annotations

from typing import Any

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from arbor.domain.exceptions import ActionConfigError


class JinjaConfigRenderer:
    """IConfigRenderer. Renders nested dict/list configs in a sandboxed environment.

    Strings without template markers are returned unchanged, so literal
    values (URLs, ids) never go through Jinja. Undefined variables render
    as empty strings.
    """

    def __init__(self, environment: SandboxedEnvironment | None = None) -> None:
        self._env = environment or SandboxedEnvironment(autoescape=False)

    def render(
        self, config: dict[str, Any], variables: dict[str, Any]
    ) -> dict[str, Any]:
        return {key: self._render_value(value, variables) for key, value in config.items()}

    def _render_value(self, value: Any, variables: dict[str, Any]) -> Any:
        if isinstance(value, str):
            return self._render_string(value, variables)
        if isinstance(value, dict):
            return {k: self._render_value(v, variables) for k, v in value.items()}
        if isinstance(value, list):
            return [self._render_value(v, variables) for v in value]
        return value

    def _render_string(self, source: str, variables: dict[str, Any]) -> str:
        if "{{" not in source and "{%" not in source:
            return source
        try:
            return self._env.from_string(source).render(**variables)
        except TemplateError as e:
            raise ActionConfigError(f"Template error in action config: {e}") from e
        except (TypeError, ValueError, ArithmeticError, LookupError) as e:
            raise ActionConfigError(f"Could not render action config: {e}") from e
