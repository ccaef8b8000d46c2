"""
Document editor and app catalog tests (undo/redo over app state).
"""

import json

import pytest

from uiruntime.core.messaging import MemoryEventSink
from uiruntime.services.catalog import AppCatalog, AppCatalogError, AppNotFoundError
from uiruntime.services.data_store import DataStore
from uiruntime.services.editor import DocumentEditError, DocumentEditor
from uiruntime.services.runtime import AppRuntime
from uiruntime.services.snippets import SnippetInsertError

from conftest import APP_ID


@pytest.fixture
def committed():
    return []


@pytest.fixture
def editor(document_text, committed) -> DocumentEditor:
    runtime = AppRuntime(APP_ID, DataStore(), events=MemoryEventSink())
    return DocumentEditor(runtime, document_text, on_commit=committed.append)


class TestDocumentEditor:

    def test_initial_text_is_loaded(self, editor):
        assert editor.runtime.document is not None
        assert editor.runtime.current_screen_id == "login"
        assert not editor.can_undo

    def test_invalid_text_keeps_last_good_document(self, editor, document_text):
        result = editor.set_text('{"screens": ')
        assert not result.ok
        assert editor.runtime.error == result.error
        assert editor.runtime.document_text == document_text
        assert editor.runtime.current_view()["screenId"] == "login"
        assert editor.can_undo

    @pytest.mark.parametrize("text", ['{"app": "\ud800"}', "[" * 100000], ids=["lone_surrogate", "deep_nesting"])
    def test_unparseable_text_is_reported_not_raised(self, editor, document_text, text):
        result = editor.set_text(text)
        assert not result.ok
        assert editor.runtime.error == result.error
        assert editor.runtime.document_text == document_text
        assert editor.undo() is not None
        assert editor.text == document_text
        assert editor.runtime.error is None

    def test_undo_restores_previous_text(self, editor, document_text, committed):
        editor.set_text("{}")
        assert editor.runtime.document.screens == {}
        editor.undo()
        assert editor.text == document_text
        assert set(editor.runtime.document.screens) == {"login", "home", "about"}
        assert committed == ["{}", document_text]
        editor.redo()
        assert editor.text == "{}"

    def test_same_text_is_not_a_new_step(self, editor, document_text, committed):
        result = editor.set_text(document_text)
        assert result.ok
        assert not editor.can_undo
        assert committed == []

    def test_undo_redo_without_history(self, editor):
        assert editor.undo() is None
        assert editor.redo() is None

    def test_stale_screen_falls_back_after_edit(self, editor, document_data):
        editor.runtime.state.navigator.navigate("about")
        del document_data["screens"]["about"]
        editor.set_text(json.dumps(document_data))
        assert editor.runtime.current_screen_id == "login"

    def test_insert_snippet_into_current_screen(self, editor):
        editor.runtime.state.navigator.navigate("about")
        insertion = editor.insert_snippet('{"type": "divider", "id": "line"}')
        assert insertion.screen_id == "about"
        ids = [c.id for c in editor.runtime.document.screens["about"].components]
        assert ids[-1] == insertion.inserted_ids[0]
        editor.undo()
        assert len(editor.runtime.document.screens["about"].components) == 1

    def test_insert_snippet_into_invalid_document(self, editor):
        editor.set_text("{oops")
        with pytest.raises(SnippetInsertError):
            editor.insert_snippet('{"type": "divider"}')

    def test_update_database_schema_creates_tables(self, editor):
        schema = {"tasks": {"fields": {"title": {"type": "string"}}}}
        result = editor.update_database_schema(schema)
        assert result.ok
        assert editor.runtime.document.table_names == ["tasks"]
        assert editor.runtime.state.store.has_table(APP_ID, "tasks")

    def test_update_database_schema_requires_valid_document(self, editor):
        editor.set_text("{oops")
        with pytest.raises(DocumentEditError):
            editor.update_database_schema({})


class TestAppCatalog:

    def test_create_rename_delete_with_undo(self):
        catalog = AppCatalog()
        entry = catalog.create("Notes", instance_id="a1")
        catalog.create("Todo", instance_id="a2")
        catalog.rename("a1", "My Notes")
        assert catalog.get("a1")["name"] == "My Notes"

        catalog.delete("a1")
        assert not catalog.contains("a1")
        catalog.undo()
        assert catalog.get("a1")["name"] == "My Notes"
        catalog.undo()
        assert catalog.get("a1") == entry
        catalog.redo()
        assert catalog.get("a1")["name"] == "My Notes"

    def test_generated_instance_ids(self):
        catalog = AppCatalog()
        first = catalog.create("A")
        second = catalog.create("B")
        assert first["instance_id"] != second["instance_id"]
        assert [a["name"] for a in catalog.apps] == ["A", "B"]

    def test_missing_app(self):
        with pytest.raises(AppNotFoundError):
            AppCatalog().rename("nope", "x")

    def test_names_are_trimmed(self):
        catalog = AppCatalog()
        assert catalog.create("  Notes  ", instance_id="a1")["name"] == "Notes"
        assert catalog.rename("a1", " Tasks ")["name"] == "Tasks"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_names_rejected(self, name):
        catalog = AppCatalog()
        with pytest.raises(AppCatalogError):
            catalog.create(name)
        catalog.create("Notes", instance_id="a1")
        with pytest.raises(AppCatalogError):
            catalog.rename("a1", name)
        assert catalog.get("a1")["name"] == "Notes"

    def test_unchanged_rename_is_not_an_undo_step(self):
        catalog = AppCatalog()
        catalog.create("Notes", instance_id="a1")
        catalog.rename("a1", " Notes ")
        catalog.undo()
        assert catalog.apps == []

    def test_last_app_cannot_be_deleted(self):
        catalog = AppCatalog()
        catalog.create("Notes", instance_id="a1")
        with pytest.raises(AppCatalogError):
            catalog.delete("a1")
        assert catalog.contains("a1")
