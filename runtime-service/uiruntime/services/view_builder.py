"""
View Builder
============

Produces the display-ready description of the current screen:
- components hidden by showIf are dropped
- "$token" values are replaced from designTokens
- "{{path}}" bindings are interpolated against form values and session
- lists bound to a table expand their item template once per record
- inputs carry their current form value
- extra screen properties (padding, layout, ...) are copied with tokens
  resolved; layout defaults to "vertical"

Token resolution and interpolation are separate: a value starting with "$"
only goes through token lookup, anything else only through interpolation.
"""

from typing import Any, Dict, List, Mapping, Optional

from uiruntime.models.app_definition import Component
from uiruntime.models.component_catalog import is_input_component
from uiruntime.models.runtime import ResolutionKind, ScreenResolution
from uiruntime.services.state import RuntimeState
from uiruntime.utils.templates import build_context, resolve_template, resolve_token

ACTION_KEYS = {"action", "itemAction"}
STRUCTURE_KEYS = {"components", "items", "dataSource"}


def is_visible(component: Component, logged_in: bool) -> bool:
    if component.show_if == "session.isLoggedIn":
        return logged_in
    if component.show_if == "session.isLoggedOut":
        return not logged_in
    return True


def resolve_value(value: Any, tokens: Mapping[str, Any], context: Mapping[str, Any]) -> Any:
    """Token lookup for "$name" strings, interpolation for the rest."""
    if isinstance(value, dict):
        return {key: resolve_value(item, tokens, context) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_value(item, tokens, context) for item in value]
    if isinstance(value, str):
        if value.startswith("$"):
            return resolve_token(value, tokens)
        return resolve_template(value, context)
    return value


class ViewBuilder:

    def __init__(self, state: RuntimeState):
        self.state = state

    @property
    def tokens(self) -> Dict[str, Any]:
        return self.state.document.design_tokens if self.state.document else {}

    def build(self, resolution: ScreenResolution) -> Dict[str, Any]:
        view: Dict[str, Any] = {
            "status": resolution.kind.value,
            "screenId": resolution.screen_id,
            "session": self.state.session_context(),
            "popup": self.state.popup.to_dict() if self.state.popup else None,
        }

        if resolution.kind is ResolutionKind.PENDING:
            view["redirectTo"] = resolution.redirect_to
        elif resolution.kind is ResolutionKind.AUTH:
            view["authMode"] = resolution.screen_id.split(":", 1)[1]
        elif resolution.kind is ResolutionKind.SCREEN:
            screen = resolution.screen
            theme = self.state.document.app.theme
            background = screen.background_color or theme.get("backgroundColor")
            context = self.state.template_context()
            for key, value in (screen.model_extra or {}).items():
                view.setdefault(key, resolve_value(value, self.tokens, context))
            view.setdefault("layout", "vertical")
            view.update({
                "title": screen.title,
                "backgroundColor": resolve_token(background, self.tokens),
                "theme": resolve_value(theme, self.tokens, {}),
                "components": self.build_components(screen.components),
            })

        return view

    def build_components(self, components: List[Component]) -> List[Dict[str, Any]]:
        logged_in = self.state.sessions.is_authenticated
        context = self.state.template_context()
        return [
            self.build_component(component, context)
            for component in components
            if is_visible(component, logged_in)
        ]

    def build_component(self, component: Component, context: Mapping[str, Any]) -> Dict[str, Any]:
        raw = component.to_dict()
        node: Dict[str, Any] = {}
        for key, value in raw.items():
            if key in STRUCTURE_KEYS:
                continue
            if key in ACTION_KEYS:
                node[key] = value
            else:
                node[key] = resolve_value(value, self.tokens, context)

        if component.components:
            node["components"] = self.build_components(component.components)

        if component.type == "list":
            node["items"] = self._build_list_items(component)

        if is_input_component(component.type):
            node["value"] = self.state.form.get(component.id, "")

        return node

    def _build_list_items(self, component: Component) -> List[Dict[str, Any]]:
        if component.data_source is None:
            return [resolve_value(item, self.tokens, {}) for item in component.items]

        records = self.state.store.get_table(self.state.app_id, component.data_source.table)
        template: Optional[Dict[str, Any]] = component.items[0] if component.items else None
        session = self.state.session_context()

        items = []
        for record in records:
            context = build_context(session, record)
            if template is None:
                item = dict(record)
            else:
                item = resolve_value(template, self.tokens, context)
            item["recordId"] = record.get("id")
            items.append(item)
        return items
