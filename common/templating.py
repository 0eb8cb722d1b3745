"""
Placeholder substitution for message templates.

Templates reference data with ``{{path}}`` placeholders, where ``path`` is a
dotted lookup into the data mapping (``{{shipment.origin}}``).

Design decisions:
- Rendering never fails: an unresolved placeholder, or one whose value is
  None, is replaced by its own path text, so a broken template is visible
  in the output instead of silently blank
- Paths walk mappings by key, sequences by integer index and anything else
  by attribute
- No escaping, conditionals or loops; anything richer belongs in a real
  templating engine
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any, Optional

PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def _lookup(current: Any, key: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(key, _MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try:
            return current[int(key)]
        except (ValueError, IndexError):
            return _MISSING
    return getattr(current, key, _MISSING)


def resolve_path(data: Any, path: str) -> Optional[Any]:
    """
    Resolve a dotted path against nested data.

    Returns None when any segment is missing or resolves to None.
    """
    current = data
    for key in path.split("."):
        if current is None:
            return None
        current = _lookup(current, key)
        if current is _MISSING:
            return None
    return current


def find_placeholders(template: str) -> list[str]:
    """List the distinct placeholder paths in a template, in order of appearance."""
    seen: list[str] = []
    for match in PLACEHOLDER.finditer(template):
        path = match.group(1).strip()
        if path not in seen:
            seen.append(path)
    return seen


def render(template: str, data: Optional[Mapping[str, Any]] = None) -> str:
    """
    Substitute every ``{{path}}`` in the template.

    Args:
        template: Text containing placeholders
        data: Values to substitute

    Returns:
        The rendered text. Unresolved paths are rendered as the path itself.

    Example:
        render("Hi {{name}}", {"name": "Ann"})  # "Hi Ann"
        render("Hi {{missing}}", {})            # "Hi missing"
    """
    data = data or {}

    def substitute(match: re.Match) -> str:
        path = match.group(1).strip()
        value = resolve_path(data, path)
        return path if value is None else str(value)

    return PLACEHOLDER.sub(substitute, template)
