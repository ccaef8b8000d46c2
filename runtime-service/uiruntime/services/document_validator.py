"""
Document Validator - reference checks on a parsed app document.

Parsing already guarantees structure. These passes look for problems that
still let the app load but will misbehave at runtime:
- Duplicate component ids
- Unknown component types
- Actions pointing at screens or tables that do not exist
- auth:* actions or guarded screens without authentication settings
- Design-token references with no matching token
"""
from typing import Any, Dict, Iterator, List, Optional, Tuple

from uiruntime.models.actions import ACTION_TYPES
from uiruntime.models.app_definition import AppDefinition, Component, is_auth_screen_id
from uiruntime.models.component_catalog import is_known_component
from uiruntime.utils.logging import get_logger
from uiruntime.utils.templates import validate_token_references

logger = get_logger(__name__)

FOLLOW_UP_KEYS = ("onSuccess", "onError")


class DocumentWarning:
    """Represents a document validation finding"""

    def __init__(self, level: str, location: str, message: str, suggestion: str = ""):
        self.level = level  # "info", "warning", "error"
        self.location = location
        self.message = message
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, str]:
        return {
            'level': self.level,
            'location': self.location,
            'message': self.message,
            'suggestion': self.suggestion
        }

    def __str__(self) -> str:
        s = f"[{self.level.upper()}] {self.location}: {self.message}"
        if self.suggestion:
            s += f"\n   → {self.suggestion}"
        return s


def iter_actions(raw: Any) -> Iterator[Dict[str, Any]]:
    """An action and all its nested follow-ups and popup button actions."""
    if not isinstance(raw, dict):
        return
    yield raw
    for key in FOLLOW_UP_KEYS:
        yield from iter_actions(raw.get(key))
    buttons = raw.get("buttons")
    if isinstance(buttons, list):
        for button in buttons:
            if isinstance(button, dict):
                yield from iter_actions(button.get("action"))


class DocumentValidator:
    """
    Validation passes:
    1. Component ids and types
    2. Action references (screens, tables, auth)
    3. Authentication settings
    4. Design tokens
    """

    def __init__(self):
        self.warnings: List[DocumentWarning] = []

    def validate(self, document: AppDefinition) -> Tuple[bool, List[DocumentWarning]]:
        """
        Returns:
            Tuple of (is_valid, warnings_list); only "error" findings make
            the document invalid
        """
        self.warnings = []

        self._validate_components(document)
        self._validate_actions(document)
        self._validate_authentication(document)
        self._validate_tokens(document)

        error_count = sum(1 for w in self.warnings if w.level == "error")
        is_valid = error_count == 0

        logger.info(
            "document.validation.completed",
            extra={
                "valid": is_valid,
                "errors": error_count,
                "warnings": sum(1 for w in self.warnings if w.level == "warning"),
            }
        )
        return is_valid, self.warnings

    def _add(self, level: str, location: str, message: str, suggestion: str = "") -> None:
        self.warnings.append(DocumentWarning(level, location, message, suggestion))

    def _validate_components(self, document: AppDefinition) -> None:
        seen_in_document: Dict[str, str] = {}
        for screen_id, screen in document.screens.items():
            seen_in_screen = set()
            for component in screen.walk():
                location = f"{screen_id}/{component.id}"
                if component.id in seen_in_screen:
                    self._add("error", location, f"Duplicate component id '{component.id}' in screen",
                              "Give each component in a screen its own id")
                elif component.id in seen_in_document:
                    self._add("info", location,
                              f"Component id '{component.id}' is also used in screen '{seen_in_document[component.id]}'")
                seen_in_screen.add(component.id)
                seen_in_document.setdefault(component.id, screen_id)

                if not is_known_component(component.type):
                    self._add("warning", location, f"Unknown component type '{component.type}'",
                              "It will not be displayed")

                if component.show_if not in (None, "session.isLoggedIn", "session.isLoggedOut"):
                    self._add("warning", location, f"Unsupported showIf '{component.show_if}'",
                              "Use session.isLoggedIn or session.isLoggedOut")

    def _component_actions(self, component: Component) -> Iterator[Dict[str, Any]]:
        for raw in (component.action, component.item_action):
            yield from iter_actions(raw)

    def _validate_actions(self, document: AppDefinition) -> None:
        tables = set(document.table_names)
        for screen_id, component in document.iter_components():
            location = f"{screen_id}/{component.id}"
            for action in self._component_actions(component):
                action_type = action.get("type")

                if action_type not in ACTION_TYPES:
                    self._add("warning", location, f"Unknown action type '{action_type}'",
                              "The action will be ignored")
                    continue

                if action_type == "navigate":
                    target = action.get("target")
                    if isinstance(target, str) and not is_auth_screen_id(target) and target not in document.screens:
                        self._add("warning", location, f"navigate target '{target}' is not a screen")

                if action_type.startswith("auth:") and document.auth is None:
                    self._add("warning", location, f"{action_type} has no effect without authentication settings",
                              "Add app.authentication")

                table = action.get("table")
                if action_type in ("submit", "deleteRecord") and table and tables and table not in tables:
                    self._add("info", location, f"Table '{table}' is not declared in databaseSchema")

    def _validate_authentication(self, document: AppDefinition) -> None:
        auth = document.auth
        guarded = [sid for sid, screen in document.screens.items() if screen.requires_auth]

        if auth is None:
            for screen_id in guarded:
                self._add("warning", screen_id, "Screen requires auth but authentication is not configured",
                          "The screen will be shown to everyone")
            return

        for name, target in (("postLoginScreen", auth.post_login_screen),
                             ("authRedirectScreen", auth.auth_redirect_screen)):
            if target and not is_auth_screen_id(target) and target not in document.screens:
                self._add("error", "app.authentication", f"{name} '{target}' is not a screen")

        if guarded and not auth.auth_redirect_screen:
            self._add("warning", "app.authentication", "Guarded screens exist but authRedirectScreen is not set",
                      "Guarded screens will be shown without a session")

        if auth.user_table not in document.table_names and document.table_names:
            self._add("info", "app.authentication", f"User table '{auth.user_table}' is not declared in databaseSchema")

    def _validate_tokens(self, document: AppDefinition) -> None:
        tokens = document.design_tokens
        missing = validate_token_references(document.app.theme, tokens)
        for screen_id, screen in document.screens.items():
            missing += validate_token_references([screen.background_color, screen.model_extra or {}], tokens)
            for component in screen.walk():
                props = {k: v for k, v in component.to_dict().items() if k not in ("action", "itemAction", "components")}
                missing += validate_token_references(props, tokens)

        for name in dict.fromkeys(missing):
            self._add("warning", "app.designTokens", f"Design token '${name}' is not defined")


def validate_document(document: Optional[AppDefinition]) -> List[DocumentWarning]:
    if document is None:
        return []
    _, warnings = DocumentValidator().validate(document)
    return warnings
