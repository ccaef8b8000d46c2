"""
Runtime registry tests: open, persist, reopen, switch and delete instances.
"""

import random

import pytest

from uiruntime.config import Settings
from uiruntime.services.api_submitter import ApiSubmitter
from uiruntime.services.catalog import BLANK_APP_DOCUMENT, AppCatalogError
from uiruntime.services.persistence import AppInstancePersistence, MemoryBackend
from uiruntime.services.registry import InstanceNotOpenError, RuntimeRegistry

from conftest import ANN


@pytest.fixture
def registry_settings() -> Settings:
    return Settings(
        persistence_backend="memory",
        persistence_debounce_seconds=10,
        api_submit_mode="simulated",
        api_simulated_delay_seconds=0,
    )


@pytest.fixture
def persistence() -> AppInstancePersistence:
    return AppInstancePersistence(MemoryBackend())


@pytest.fixture
def registry(registry_settings, persistence, events) -> RuntimeRegistry:
    return RuntimeRegistry(
        registry_settings,
        persistence=persistence,
        events=events,
        submitter_factory=lambda: ApiSubmitter(mode="simulated", simulated_delay=0, rng=random.Random(3)),
    )


class TestRuntimeRegistry:

    async def test_open_new_instance(self, registry, document_text):
        editor = await registry.open_instance("a1", document_text)
        assert editor.runtime.current_screen_id == "login"
        assert registry.open_instances == ["a1"]
        assert registry.catalog.get("a1")["name"] == "Notes"
        assert registry.store.table_names("a1") == ["users", "notes"]

    async def test_open_is_idempotent(self, registry, document_text):
        first = await registry.open_instance("a1", document_text)
        assert await registry.open_instance("a1") is first

    async def test_get_unknown_instance(self, registry):
        with pytest.raises(InstanceNotOpenError):
            registry.get("ghost")

    async def test_state_survives_close_and_reopen(self, registry, persistence, document_text):
        editor = await registry.open_instance("a1", document_text)
        registry.store.set_table("a1", "users", [ANN])
        editor.set_text(document_text.replace('"Notes"', '"Notes 2"'))
        await registry.close_instance("a1")

        stored = await persistence.load_app_instance("a1")
        assert '"Notes 2"' in stored.document_text
        assert stored.data_store_snapshot["users"] == [ANN]

        reopened = await registry.open_instance("a1", "{}")
        assert reopened.runtime.document.app.name == "Notes 2"
        assert registry.store.get_table("a1", "users") == [ANN]

    async def test_instances_do_not_share_data(self, registry, document_text):
        await registry.open_instance("a1", document_text)
        await registry.open_instance("a2", document_text)
        registry.store.insert("a1", "notes", {"title": "only in a1"})
        assert registry.store.get_table("a2", "notes") == []

    async def test_switching_resets_transient_state(self, registry, events, document_text):
        editor = await registry.activate("a1", document_text)
        registry.store.set_table("a1", "users", [ANN])
        editor.runtime.set_fields({"email": ANN["email"], "password": ANN["password"]})
        await editor.runtime.trigger("login_btn")
        assert editor.runtime.session is not None

        await registry.activate("a2", document_text)
        await registry.activate("a1")
        assert editor.runtime.session is None
        assert editor.runtime.form_state == {}
        assert editor.runtime.current_screen_id == "login"
        assert [e["app_id"] for e in events.of_type("app.activated")] == ["a1", "a2", "a1"]

    async def test_reactivating_same_instance_keeps_state(self, registry, document_text):
        editor = await registry.activate("a1", document_text)
        editor.runtime.set_field("email", "x")
        await registry.activate("a1")
        assert editor.runtime.form_state == {"email": "x"}

    async def test_delete_instance(self, registry, persistence, document_text):
        await registry.open_instance("a2", document_text)
        await registry.activate("a1", document_text)
        registry.store.insert("a1", "notes", {"title": "saved"})
        await registry.saver.flush()
        assert await persistence.exists("a1")
        await registry.delete_instance("a1")
        assert not await persistence.exists("a1")
        assert registry.open_instances == ["a2"]
        assert registry.active_instance_id is None
        assert not registry.catalog.contains("a1")

    async def test_last_app_is_not_deleted(self, registry, persistence, document_text):
        await registry.activate("a1", document_text)
        registry.store.insert("a1", "notes", {"title": "kept"})
        await registry.saver.flush()
        with pytest.raises(AppCatalogError):
            await registry.delete_instance("a1")
        assert registry.open_instances == ["a1"]
        assert await persistence.exists("a1")

    async def test_new_instance_starts_from_blank_app(self, registry):
        editor = await registry.open_instance("fresh")
        assert editor.text == BLANK_APP_DOCUMENT
        assert editor.runtime.current_screen_id == "home"
        assert registry.catalog.get("fresh")["name"] == "New App"

    async def test_rename_instance(self, registry, document_text):
        await registry.open_instance("a1", document_text)
        assert registry.rename_instance("a1", "  Journal ")["name"] == "Journal"
        with pytest.raises(AppCatalogError):
            registry.rename_instance("a1", " ")

    async def test_shutdown_flushes_pending_saves(self, registry, persistence, document_text):
        editor = await registry.open_instance("a1", document_text)
        editor.set_text("{}")
        await registry.shutdown()
        assert (await persistence.load_app_instance("a1")).document_text == "{}"
