"""Template rendering for notification titles and bodies.

Placeholders use ``{{ name }}`` syntax; dotted paths (``{{ user.name }}``)
walk nested mappings. Rendering is best-effort: placeholders without a value
are left in place. Substituted values are not re-rendered.
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Tuple

from infrastructure.notifications.exceptions import TemplateRenderError

PLACEHOLDER_PATTERN = re.compile(r"{{([^{}]*)}}")
VARIABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
MAX_TEMPLATE_LENGTH = 10_000

DANGEROUS_PATTERNS = (
    re.compile(r"<script\b", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
)

_MISSING = object()


def _lookup(path: str, variables: Mapping[str, Any]) -> Any:
    if path in variables:
        return variables[path]
    current: Any = variables
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


class TemplateRenderer:
    """Renders ``{{ placeholder }}`` templates.

    Example:
        renderer = TemplateRenderer()
        renderer.render("Hi {{ user.name }}", {"user": {"name": "Ada"}})
        # "Hi Ada"
    """

    def render(self, template: str, variables: Mapping[str, Any]) -> str:
        """Substitute known placeholders, leaving unknown ones literal.

        Raises:
            TemplateRenderError: template is not a string or variables is not a mapping.
        """
        if not isinstance(template, str):
            raise TemplateRenderError(
                f"Template must be a string, got {type(template).__name__}"
            )
        if not isinstance(variables, Mapping):
            raise TemplateRenderError(
                f"Template variables must be a mapping, got {type(variables).__name__}"
            )

        def substitute(match: "re.Match[str]") -> str:
            value = _lookup(match.group(1).strip(), variables)
            if value is _MISSING or value is None:
                return match.group(0)
            return str(value)

        return PLACEHOLDER_PATTERN.sub(substitute, template)

    def compile(self, template: str) -> Callable[[Mapping[str, Any]], str]:
        """Return a callable rendering ``template`` with the given variables."""
        if not isinstance(template, str):
            raise TemplateRenderError(
                f"Template must be a string, got {type(template).__name__}"
            )
        return lambda variables: self.render(template, variables)

    def validate_template(self, template: str) -> Tuple[bool, List[str]]:
        """Check placeholder syntax, bracket balance, content safety and length.

        Returns:
            ``(is_valid, errors)``
        """
        errors: List[str] = []

        for match in PLACEHOLDER_PATTERN.finditer(template):
            name = match.group(1).strip()
            if not name:
                errors.append("Empty variable name found")
            elif not VARIABLE_NAME_PATTERN.match(name):
                errors.append(
                    f"Invalid variable name: {name}. Variables must start with a "
                    "letter or underscore and contain only letters, numbers, "
                    "underscores and dots"
                )

        if template.count("{{") != template.count("}}"):
            errors.append("Mismatched brackets in template")

        if any(pattern.search(template) for pattern in DANGEROUS_PATTERNS):
            errors.append("Template contains potentially dangerous content")

        if len(template) > MAX_TEMPLATE_LENGTH:
            errors.append(
                f"Template is too long (maximum {MAX_TEMPLATE_LENGTH:,} characters)"
            )

        return not errors, errors

    def extract_variables(self, template: str) -> List[str]:
        """Placeholder names in order of first appearance, without duplicates."""
        names: Dict[str, None] = {}
        for match in PLACEHOLDER_PATTERN.finditer(template):
            name = match.group(1).strip()
            if name:
                names[name] = None
        return list(names)

    @staticmethod
    def is_valid_variable_name(name: str) -> bool:
        return bool(VARIABLE_NAME_PATTERN.match(name))
