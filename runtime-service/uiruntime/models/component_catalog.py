"""Centralized UI component registry.

Single source of truth for the component types the runtime knows how to
interpret: which ones hold children, which ones feed form state, and which
property carries their action.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List, Optional, TypedDict


class ComponentDefinition(TypedDict, total=False):
    """Definition for a UI component type."""

    type: str
    category: str
    aliases: List[str]
    container: bool
    event: str
    schema: Dict[str, Any]


COMPONENT_DEFINITIONS: Dict[str, ComponentDefinition] = {
    "text": {
        "type": "text",
        "category": "display",
        "schema": {
            "content": {"type": "string", "required": False},
            "variant": {"type": "string", "required": False},
            "color": {"type": "string", "required": False},
        },
    },
    "input": {
        "type": "input",
        "category": "input",
        "aliases": ["textinput", "textfield"],
        "schema": {
            "label": {"type": "string", "required": False},
            "placeholder": {"type": "string", "required": False},
            "inputType": {"type": "string", "required": False},
        },
    },
    "button": {
        "type": "button",
        "category": "interactive",
        "event": "action",
        "schema": {
            "label": {"type": "string", "required": False},
            "variant": {"type": "string", "required": False},
            "action": {"type": "action", "required": False},
        },
    },
    "image": {
        "type": "image",
        "category": "display",
        "schema": {
            "src": {"type": "string", "required": False},
            "alt": {"type": "string", "required": False},
        },
    },
    "list": {
        "type": "list",
        "category": "data",
        "event": "itemAction",
        "schema": {
            "dataSource": {"type": "object", "required": False},
            "items": {"type": "array", "required": False},
            "itemAction": {"type": "action", "required": False},
            "emptyMessage": {"type": "string", "required": False},
        },
    },
    "card": {
        "type": "card",
        "category": "layout",
        "container": True,
        "schema": {
            "padding": {"type": "string", "required": False},
            "backgroundColor": {"type": "string", "required": False},
        },
    },
    "container": {
        "type": "container",
        "category": "layout",
        "aliases": ["view", "stack"],
        "container": True,
        "schema": {
            "direction": {"type": "string", "required": False},
            "gap": {"type": "string", "required": False},
        },
    },
    "select": {
        "type": "select",
        "category": "input",
        "schema": {
            "label": {"type": "string", "required": False},
            "options": {"type": "array", "required": False},
        },
    },
    "checkbox": {
        "type": "checkbox",
        "category": "input",
        "schema": {"label": {"type": "string", "required": False}},
    },
    "divider": {
        "type": "divider",
        "category": "display",
        "schema": {},
    },
    "datepicker": {
        "type": "datepicker",
        "category": "input",
        "aliases": ["date"],
        "schema": {"label": {"type": "string", "required": False}},
    },
    "timepicker": {
        "type": "timepicker",
        "category": "input",
        "aliases": ["time"],
        "schema": {"label": {"type": "string", "required": False}},
    },
}


def _build_alias_index() -> Dict[str, str]:
    aliases: Dict[str, str] = {}
    for canonical, definition in COMPONENT_DEFINITIONS.items():
        aliases[canonical.lower()] = canonical
        for alias in definition.get("aliases", []):
            aliases[alias.lower()] = canonical
    return aliases


_COMPONENT_ALIAS_INDEX = _build_alias_index()


def normalize_component_type(component_type: str, fallback: str = "") -> str:
    if not component_type:
        return fallback
    canonical = _COMPONENT_ALIAS_INDEX.get(component_type.strip().lower())
    return canonical if canonical else fallback


def get_component_definition(component_type: str) -> Optional[ComponentDefinition]:
    canonical = normalize_component_type(component_type)
    if not canonical:
        return None
    return COMPONENT_DEFINITIONS.get(canonical)


def is_known_component(component_type: str) -> bool:
    return get_component_definition(component_type) is not None


def get_available_components() -> List[str]:
    return sorted(COMPONENT_DEFINITIONS.keys())


def is_container_component(component_type: str) -> bool:
    definition = get_component_definition(component_type)
    return bool(definition and definition.get("container"))


def is_input_component(component_type: str) -> bool:
    definition = get_component_definition(component_type)
    return bool(definition and definition.get("category") == "input")


def get_component_event(component_type: str) -> str:
    """Name of the property holding the component's action ('' if none)."""
    definition = get_component_definition(component_type)
    if not definition:
        return ""
    return definition.get("event", "")


def get_interactive_components() -> List[str]:
    return sorted(name for name, definition in COMPONENT_DEFINITIONS.items() if definition.get("event"))


def export_component_catalog() -> Dict[str, Any]:
    return {
        "components": deepcopy(COMPONENT_DEFINITIONS),
        "aliases": deepcopy(_COMPONENT_ALIAS_INDEX),
        "interactive_components": get_interactive_components(),
        "input_components": sorted(n for n in COMPONENT_DEFINITIONS if is_input_component(n)),
        "container_components": sorted(n for n in COMPONENT_DEFINITIONS if is_container_component(n)),
    }
