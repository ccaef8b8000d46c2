"""
Snippet Insertion
=================

Appends one or more snippet components to a screen of an app document.

Every inserted id (nested children included) is rewritten as
    <source id>_<stamp>_<position>
with one stamp shared by the whole insertion. If that still clashes with an
id already in the document, a counter suffix is added until it does not.

The input document is never modified; the result is a new document that has
passed validation.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from uiruntime.models.app_definition import AppDefinition
from uiruntime.utils.ids import timestamp_ms
from uiruntime.utils.logging import get_logger

logger = get_logger(__name__)


class SnippetInsertError(Exception):
    """Raised when a snippet cannot be inserted; the document is left as it was"""
    pass


@dataclass
class SnippetInsertion:
    data: Dict[str, Any]
    document: AppDefinition
    screen_id: str
    inserted_ids: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False)


def collect_component_ids(document_data: Dict[str, Any]) -> Set[str]:
    """Every component id in a raw document, across all screens."""
    ids: Set[str] = set()

    def walk(components: Any) -> None:
        if not isinstance(components, list):
            return
        for component in components:
            if isinstance(component, dict):
                if component.get("id") is not None:
                    ids.add(str(component["id"]))
                walk(component.get("components"))

    screens = document_data.get("screens")
    if isinstance(screens, dict):
        for screen in screens.values():
            if isinstance(screen, dict):
                walk(screen.get("components"))
    return ids


def _parse_snippet(snippet_json: str) -> List[Dict[str, Any]]:
    try:
        parsed = json.loads(snippet_json)
    except (TypeError, json.JSONDecodeError) as e:
        raise SnippetInsertError(f"The snippet JSON is invalid: {e}") from e

    components = parsed if isinstance(parsed, list) else [parsed]
    if not components:
        raise SnippetInsertError("The snippet contains no components")
    if not all(isinstance(c, dict) for c in components):
        raise SnippetInsertError("Snippet components must be JSON objects")
    return components


class _IdRewriter:

    def __init__(self, taken: Set[str], stamp: int):
        self.taken = taken
        self.stamp = stamp
        self.assigned: List[str] = []

    def unique_id(self, base: str, index: int) -> str:
        candidate = f"{base}_{self.stamp}_{index}"
        suffix = 1
        while candidate in self.taken:
            candidate = f"{base}_{self.stamp}_{index}_{suffix}"
            suffix += 1
        self.taken.add(candidate)
        self.assigned.append(candidate)
        return candidate

    def rewrite(self, components: List[Any]) -> List[Any]:
        rewritten = []
        for index, component in enumerate(components):
            if not isinstance(component, dict):
                rewritten.append(component)
                continue
            base = component.get("id") or component.get("type") or "component"
            new_component = {**component, "id": self.unique_id(str(base), index)}
            if isinstance(component.get("components"), list):
                new_component["components"] = self.rewrite(component["components"])
            rewritten.append(new_component)
        return rewritten


def insert_snippet(
    document_data: Optional[Dict[str, Any]],
    target_screen_id: Optional[str],
    snippet_json: str,
    stamp: Optional[int] = None,
) -> SnippetInsertion:
    """
    Insert snippet components at the end of a screen.

    Args:
        document_data: raw JSON dict of the current (valid) document, or None
        target_screen_id: screen to append to; falls back to initialScreen
        snippet_json: one component object or an array of them
        stamp: shared id stamp (defaults to the current time in ms)

    Raises:
        SnippetInsertError: invalid document, invalid snippet, no target screen,
            or a result that does not validate
    """
    if not isinstance(document_data, dict):
        raise SnippetInsertError("The current app document is invalid")

    components = _parse_snippet(snippet_json)

    screens = document_data.get("screens")
    target = target_screen_id or document_data.get("initialScreen")
    if not target or not isinstance(screens, dict) or not isinstance(screens.get(target), dict):
        raise SnippetInsertError("Could not find a screen to add the components to")

    existing = screens[target].get("components", [])
    if not isinstance(existing, list):
        raise SnippetInsertError(f"Screen '{target}' has no component list")

    rewriter = _IdRewriter(collect_component_ids(document_data), stamp or timestamp_ms())
    new_components = rewriter.rewrite(copy.deepcopy(components))

    new_data = copy.deepcopy(document_data)
    new_data["screens"][target]["components"] = [*copy.deepcopy(existing), *new_components]

    try:
        document = AppDefinition.model_validate(new_data)
    except ValidationError as e:
        raise SnippetInsertError(f"The snippet does not form valid components: {e.error_count()} error(s)") from e

    logger.info(
        "snippet.insert.completed",
        extra={"screen_id": target, "components": len(new_components), "ids": len(rewriter.assigned)}
    )
    return SnippetInsertion(data=new_data, document=document, screen_id=target, inserted_ids=rewriter.assigned)
