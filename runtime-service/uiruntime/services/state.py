"""
Mutable state of one running app instance.

Bundles everything an action may touch: the current document, data store
scope, session, form buffer, navigation and the open popup.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from uiruntime.core.messaging import EventSink, LoggingEventSink
from uiruntime.models.app_definition import AppDefinition
from uiruntime.models.runtime import PopupState, session_context
from uiruntime.services.auth import SessionManager
from uiruntime.services.data_store import DataStore
from uiruntime.services.navigation import Navigator


class FormState:
    """formFieldId -> value input buffer"""

    def __init__(self):
        self._values: Dict[str, Any] = {}

    @property
    def values(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def get(self, field_id: str, default: Any = None) -> Any:
        return self._values.get(field_id, default)

    def update_field(self, field_id: str, value: Any) -> None:
        self._values[field_id] = value

    def update_fields(self, values: Dict[str, Any]) -> None:
        self._values.update(values)

    def reset(self, field_ids: Optional[Iterable[str]] = None) -> None:
        """Clear the given fields (set to ''), or drop everything."""
        if field_ids is None:
            self._values = {}
            return
        for field_id in field_ids:
            self._values[field_id] = ""


@dataclass
class RuntimeState:
    app_id: str
    store: DataStore
    navigator: Navigator = field(default_factory=Navigator)
    sessions: SessionManager = field(default_factory=SessionManager)
    form: FormState = field(default_factory=FormState)
    events: EventSink = field(default_factory=LoggingEventSink)
    document: Optional[AppDefinition] = None
    popup: Optional[PopupState] = None

    def publish(self, event: str, **payload: Any) -> None:
        self.events.publish(event, {"app_id": self.app_id, **payload})

    def session_context(self) -> Dict[str, Any]:
        return session_context(self.sessions.session)

    def template_context(self, record: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Form values and record fields, plus `session`."""
        context: Dict[str, Any] = self.form.values
        context.update(record or {})
        context["session"] = self.session_context()
        return context

    def reset_transient(self) -> None:
        """Forget session, form input, popup and current screen."""
        self.sessions.logout()
        self.form.reset()
        self.popup = None
        self.navigator.reset()
