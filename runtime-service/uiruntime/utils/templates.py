"""
Template Resolution
===================

Two independent passes over display values:

1. Design tokens: a string starting with "$" names an entry in the
   app's designTokens map. Unknown names are returned unchanged.
2. Interpolation: "{{path}}" placeholders are replaced by walking the
   dot-separated path through a context dict. Unresolved paths render
   as an empty string.

The passes are never combined. A token value that happens to contain
"{{...}}" is not interpolated, and an interpolated value that starts
with "$" is not looked up as a token.
"""

import json
import re
from typing import Any, Dict, List, Mapping, Optional

TEMPLATE_PATTERN = re.compile(r"\{\{(.*?)\}\}")
SINGLE_TEMPLATE_PATTERN = re.compile(r"^\{\{([^{}]*)\}\}$")

_MISSING = object()


# ============================================================================
# DESIGN TOKENS
# ============================================================================

def resolve_token(value: Any, tokens: Optional[Mapping[str, Any]]) -> Any:
    """Resolve a single "$name" reference, or return value untouched."""
    if not isinstance(value, str) or not value.startswith("$") or not tokens:
        return value
    name = value[1:]
    if name in tokens:
        return tokens[name]
    return value


def collect_token_references(value: Any) -> List[str]:
    """All "$name" strings found in a nested structure, in order of appearance."""
    found: List[str] = []

    def walk(node: Any) -> None:
        if isinstance(node, dict):
            for item in node.values():
                walk(item)
        elif isinstance(node, list):
            for item in node:
                walk(item)
        elif isinstance(node, str) and node.startswith("$") and len(node) > 1:
            found.append(node[1:])

    walk(value)
    return found


def validate_token_references(value: Any, tokens: Optional[Mapping[str, Any]]) -> List[str]:
    """Return the token names referenced in value but absent from tokens."""
    tokens = tokens or {}
    missing: List[str] = []
    for name in collect_token_references(value):
        if name not in tokens and name not in missing:
            missing.append(name)
    return missing


# ============================================================================
# INTERPOLATION
# ============================================================================

def get_nested_value(context: Any, path: str, default: Any = None) -> Any:
    """
    Walk a dot path through nested dicts (and lists, by numeric index).

    >>> get_nested_value({"session": {"user": {"email": "a@b.com"}}}, "session.user.email")
    'a@b.com'
    """
    current = context
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return default
    return current


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def interpolate(template: str, context: Mapping[str, Any]) -> str:
    """Replace every {{path}} in template. Missing values become ''."""
    if not isinstance(template, str):
        return template

    def replace(match: "re.Match[str]") -> str:
        return _stringify(get_nested_value(context, match.group(1).strip()))

    return TEMPLATE_PATTERN.sub(replace, template)


def resolve_template(template: Any, context: Mapping[str, Any]) -> Any:
    """
    Resolve a display binding.

    A string that is exactly one placeholder keeps the raw value type
    (number, bool, dict); a missing value renders as '' like any other
    unresolved placeholder. Any other string is interpolated.
    """
    if not isinstance(template, str):
        return template

    single = SINGLE_TEMPLATE_PATTERN.match(template)
    if single:
        value = get_nested_value(context, single.group(1).strip(), _MISSING)
        return "" if value is _MISSING else value

    return interpolate(template, context)


def build_context(session: Optional[Dict[str, Any]] = None, record: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Context for list items and screen bindings: record fields plus `session`."""
    context: Dict[str, Any] = dict(record or {})
    context["session"] = session or {"user": None, "isLoggedIn": False}
    return context
