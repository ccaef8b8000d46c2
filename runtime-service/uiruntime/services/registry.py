"""
Runtime Registry
================

Process-lifetime context for every open app instance.

Owns the shared collaborators (data store, document cache, persistence,
event sink) and hands them to each instance's runtime. Document edits and
data mutations are saved through a debounced saver.
"""

from typing import Callable, Dict, List, Optional

from uiruntime.config import Settings, settings as default_settings
from uiruntime.core.cache import CacheManager
from uiruntime.core.messaging import EventSink, LoggingEventSink
from uiruntime.services.api_submitter import ApiSubmitter
from uiruntime.services.auth import AuthSimulator
from uiruntime.services.catalog import BLANK_APP_DOCUMENT, AppCatalog, AppEntry
from uiruntime.services.data_store import DataStore
from uiruntime.services.dispatcher import ActionDispatcher
from uiruntime.services.editor import DocumentEditor
from uiruntime.services.persistence import (
    AppInstanceNotFoundError,
    AppInstancePersistence,
    DebouncedSaver,
    create_persistence,
)
from uiruntime.services.runtime import AppRuntime
from uiruntime.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class InstanceNotOpenError(LookupError):
    """Raised when an app instance has not been opened in this registry"""
    pass


class RuntimeRegistry:

    def __init__(
        self,
        settings: Optional[Settings] = None,
        persistence: Optional[AppInstancePersistence] = None,
        events: Optional[EventSink] = None,
        cache: Optional[CacheManager] = None,
        submitter_factory: Optional[Callable[[], ApiSubmitter]] = None,
    ):
        self.settings = settings or default_settings
        self.cache = cache or CacheManager(
            default_ttl=self.settings.document_cache_ttl,
            max_entries=self.settings.document_cache_max_entries,
        )
        self.events = events or LoggingEventSink()
        self.store = DataStore()
        self.persistence = persistence or create_persistence(
            self.settings.persistence_backend, self.settings.storage_path
        )
        self.saver = DebouncedSaver(self.persistence, self.settings.persistence_debounce_seconds)
        self.catalog = AppCatalog(limit=self.settings.history_limit)
        self._submitter_factory = submitter_factory or ApiSubmitter
        self._editors: Dict[str, DocumentEditor] = {}
        self.active_instance_id: Optional[str] = None
        self.store.subscribe(self._on_data_changed)

    @property
    def open_instances(self) -> List[str]:
        return list(self._editors)

    def _on_data_changed(self, instance_id: str) -> None:
        if instance_id in self._editors:
            self.saver.schedule(instance_id, data_store_snapshot=self.store.snapshot(instance_id))

    def _build_editor(self, instance_id: str, text: str) -> DocumentEditor:
        dispatcher = ActionDispatcher(
            AuthSimulator(self.store),
            self._submitter_factory(),
            max_depth=self.settings.max_action_chain_depth,
        )
        runtime = AppRuntime(instance_id, self.store, dispatcher=dispatcher, events=self.events, cache=self.cache)
        return DocumentEditor(
            runtime,
            text,
            history_limit=self.settings.history_limit,
            on_commit=lambda committed: self.saver.schedule(instance_id, document_text=committed),
        )

    async def open_instance(self, instance_id: str, default_document: str = "") -> DocumentEditor:
        """
        Load an instance from persistence.

        An instance with nothing stored starts from default_document, or
        from the blank app document when none is given.
        """
        if instance_id in self._editors:
            return self._editors[instance_id]

        with log_context(instance_id=instance_id):
            try:
                snapshot = await self.persistence.load_app_instance(instance_id)
                text = snapshot.document_text or default_document or BLANK_APP_DOCUMENT
                self.store.set_app_data(instance_id, snapshot.data_store_snapshot, notify=False)
                logger.info("registry.instance.loaded", extra={"tables": list(snapshot.data_store_snapshot)})
            except AppInstanceNotFoundError:
                text = default_document or BLANK_APP_DOCUMENT
                logger.info("registry.instance.created")

            editor = self._build_editor(instance_id, text)
            self._editors[instance_id] = editor
            if not self.catalog.contains(instance_id):
                name = editor.runtime.document.app.name if editor.runtime.document else instance_id
                self.catalog.create((name or "").strip() or instance_id, instance_id=instance_id)
            return editor

    def get(self, instance_id: str) -> DocumentEditor:
        editor = self._editors.get(instance_id)
        if editor is None:
            raise InstanceNotOpenError(f"App instance is not open: {instance_id}")
        return editor

    async def activate(self, instance_id: str, default_document: str = "") -> DocumentEditor:
        """Make an instance the active one; its transient state starts fresh."""
        editor = await self.open_instance(instance_id, default_document)
        if self.active_instance_id != instance_id:
            editor.runtime.reset_transient_state()
            previous = self.active_instance_id
            self.active_instance_id = instance_id
            self.events.publish("app.activated", {"app_id": instance_id, "previous": previous})
        return editor

    async def close_instance(self, instance_id: str) -> None:
        """Save pending changes and drop the instance from memory."""
        await self.saver.flush(instance_id)
        self._editors.pop(instance_id, None)
        self.store.drop_app(instance_id)
        if self.active_instance_id == instance_id:
            self.active_instance_id = None

    def rename_instance(self, instance_id: str, name: str) -> AppEntry:
        """
        Raises:
            AppNotFoundError: the instance is not in the catalog
            AppCatalogError: the name is blank
        """
        return self.catalog.rename(instance_id, name)

    async def delete_instance(self, instance_id: str) -> None:
        """
        Raises:
            AppCatalogError: the instance is the last app in the catalog
        """
        if self.catalog.contains(instance_id):
            self.catalog.ensure_deletable(instance_id)
        self._editors.pop(instance_id, None)
        await self.saver.flush(instance_id)
        self.store.drop_app(instance_id)
        await self.persistence.delete_app_instance(instance_id)
        if self.catalog.contains(instance_id):
            self.catalog.delete(instance_id)
        if self.active_instance_id == instance_id:
            self.active_instance_id = None

    async def shutdown(self) -> None:
        await self.saver.close()
        self.cache.clear()
        logger.info("registry.shutdown.completed", extra={"instances": len(self._editors)})
