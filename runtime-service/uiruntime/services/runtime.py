"""
App Runtime
===========

One running preview of an app document. Ties together the parsed document,
navigation, session, form buffer, popup and the action dispatcher for a
single app instance.

Flow per user event:
    load_document(text)  -> parse, keep last good document on failure
    current_view()       -> sync navigation, resolve screen, schedule redirect
    dispatch(action)     -> mutate store / session / navigation
"""

from typing import Any, Dict, List, Optional

from uiruntime.core.cache import CacheManager
from uiruntime.core.messaging import EventSink, LoggingEventSink
from uiruntime.models.app_definition import AppDefinition
from uiruntime.models.runtime import DispatchResult, ScreenResolution
from uiruntime.services.api_submitter import ApiSubmitter
from uiruntime.services.auth import AuthSimulator
from uiruntime.services.data_store import DataStore
from uiruntime.services.dispatcher import ActionDispatcher
from uiruntime.services.document_parser import ParseResult, parse_document
from uiruntime.services.document_validator import DocumentWarning, validate_document
from uiruntime.services.navigation import Navigator
from uiruntime.services.state import RuntimeState
from uiruntime.services.view_builder import ViewBuilder
from uiruntime.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class ComponentNotFoundError(LookupError):
    """Raised when triggering a component that is not on the current screen"""
    pass


class AppRuntime:
    """
    Usage:
        runtime = AppRuntime("app-1", DataStore())
        runtime.load_document(text)
        await runtime.dispatch({"type": "navigate", "target": "home"})
        view = runtime.current_view()
    """

    def __init__(
        self,
        app_id: str,
        store: DataStore,
        dispatcher: Optional[ActionDispatcher] = None,
        events: Optional[EventSink] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.cache = cache
        self.state = RuntimeState(
            app_id=app_id,
            store=store,
            navigator=Navigator(on_change=self._on_screen_change),
            events=events or LoggingEventSink(),
        )
        self.dispatcher = dispatcher or ActionDispatcher(AuthSimulator(store), ApiSubmitter())
        self.document_text: Optional[str] = None
        self.document_data: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.warnings: List[DocumentWarning] = []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def app_id(self) -> str:
        return self.state.app_id

    @property
    def document(self) -> Optional[AppDefinition]:
        return self.state.document

    @property
    def current_screen_id(self) -> Optional[str]:
        return self.state.navigator.current_screen_id

    @property
    def session(self):
        return self.state.sessions.session

    @property
    def form_state(self) -> Dict[str, Any]:
        return self.state.form.values

    @property
    def popup(self):
        return self.state.popup

    def _on_screen_change(self, previous: Optional[str], current: Optional[str]) -> None:
        self.state.publish("screen.changed", previous=previous, current=current)

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def load_document(self, text: str) -> ParseResult:
        """
        Parse and commit a new document.

        On failure the previous document and screen stay in place and
        `error` describes the problem.
        """
        with log_context(instance_id=self.app_id):
            result = parse_document(text, self.cache)

            if not result.ok:
                self.error = result.error
                self.state.publish("document.parse_failed", error=result.error)
                return result

            self.error = None
            self.document_text = text
            self.document_data = result.data
            self.state.document = result.document

            self.state.store.ensure_tables(self.app_id, result.document.table_names)
            self.state.navigator.sync(result.document)
            self.warnings = validate_document(result.document)

            logger.info(
                "runtime.document.loaded",
                extra={"screens": len(result.document.screens), "warnings": len(self.warnings)},
            )
            return result

    # ------------------------------------------------------------------
    # Screen resolution
    # ------------------------------------------------------------------

    def resolve(self) -> ScreenResolution:
        """Pure view of what should be on screen now."""
        return self.state.navigator.resolve(self.state.document, self.state.sessions.session)

    def current_view(self) -> Dict[str, Any]:
        """
        Display description of the current screen.

        A guarded screen without a session yields status "pending" and
        schedules the redirect for the next loop tick.
        """
        self.state.navigator.sync(self.state.document)
        resolution = self.resolve()
        if resolution.is_pending:
            self.state.navigator.schedule_redirect(resolution.redirect_to)
        return ViewBuilder(self.state).build(resolution)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def dispatch(self, action: Any, scope: Optional[Dict[str, Any]] = None) -> DispatchResult:
        return await self.dispatcher.dispatch(action, self.state, scope)

    async def trigger(self, component_id: str, record_id: Optional[str] = None) -> DispatchResult:
        """
        Fire the action of a component on the current screen.

        For a list bound to a table, record_id selects the item whose
        fields become the action's template scope.

        Raises:
            ComponentNotFoundError: no such component on the current screen
        """
        screen = self.resolve().screen
        component = screen.find_component(component_id) if screen else None
        if component is None:
            raise ComponentNotFoundError(f"Component '{component_id}' is not on the current screen")

        if component.type == "list":
            scope = None
            if record_id is not None and component.data_source is not None:
                scope = self.state.store.get_record(self.app_id, component.data_source.table, record_id)
            return await self.dispatch(component.item_action, scope)

        return await self.dispatch(component.action)

    def set_field(self, field_id: str, value: Any) -> None:
        self.state.form.update_field(field_id, value)

    def set_fields(self, values: Dict[str, Any]) -> None:
        self.state.form.update_fields(values)

    async def press_popup_button(self, index: int) -> DispatchResult:
        """Close the popup and run the pressed button's action."""
        popup = self.state.popup
        if popup is None or not 0 <= index < len(popup.buttons):
            return DispatchResult()
        self.state.popup = None
        return await self.dispatch(popup.buttons[index].get("action"))

    def close_popup(self) -> None:
        self.state.popup = None

    def apply_pending_redirect(self) -> bool:
        return self.state.navigator.apply_pending_redirect()

    def reset_transient_state(self) -> None:
        """Forget session, form, popup and screen; land on initialScreen."""
        self.state.reset_transient()
        self.state.navigator.sync(self.state.document)
        logger.debug("runtime.transient.reset", extra={"app_id": self.app_id})
