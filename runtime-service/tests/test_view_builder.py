"""
Screen view tests: visibility, tokens, bindings, list expansion and guards.
"""

import asyncio
import json

import pytest

from uiruntime.services.runtime import AppRuntime, ComponentNotFoundError
from uiruntime.services.view_builder import is_visible, resolve_value

from conftest import ANN, APP_ID


def by_id(view):
    return {c["id"]: c for c in view["components"]}


async def login(runtime):
    runtime.set_fields({"email": ANN["email"], "password": ANN["password"]})
    await runtime.trigger("login_btn")
    assert runtime.session is not None


class TestCurrentView:

    def test_initial_screen(self, runtime):
        view = runtime.current_view()
        assert view["status"] == "screen"
        assert view["screenId"] == "login"
        assert view["title"] == "Sign in"
        assert view["session"] == {"user": None, "isLoggedIn": False}
        assert [c["id"] for c in view["components"]] == ["email", "password", "login_btn"]

    def test_theme_tokens_resolved(self, runtime):
        view = runtime.current_view()
        assert view["theme"]["primaryColor"] == "#6200ee"
        assert view["backgroundColor"] == "#ffffff"

    def test_inputs_carry_form_values(self, runtime):
        runtime.set_field("email", "typed@example.com")
        components = by_id(runtime.current_view())
        assert components["email"]["value"] == "typed@example.com"
        assert components["password"]["value"] == ""

    def test_actions_are_not_resolved(self, runtime):
        action = by_id(runtime.current_view())["login_btn"]["action"]
        assert action["type"] == "auth:login"
        assert action["onError"]["title"] == "Login failed"

    def test_screen_style_properties_resolved(self, store, document_data):
        document_data["screens"]["login"].update({"padding": "$spacing", "layout": "horizontal"})
        runtime = AppRuntime(APP_ID, store)
        assert runtime.load_document(json.dumps(document_data)).ok
        view = runtime.current_view()
        assert view["padding"] == 8
        assert view["layout"] == "horizontal"
        assert view["screenId"] == "login"

    def test_layout_defaults_to_vertical(self, runtime):
        view = runtime.current_view()
        assert view["layout"] == "vertical"
        assert "padding" not in view

    def test_no_document(self, store):
        view = AppRuntime("empty", store).current_view()
        assert view["status"] == "empty"
        assert view["screenId"] is None

    def test_auth_pseudo_screen(self, runtime):
        runtime.state.navigator.navigate("auth:signup")
        view = runtime.current_view()
        assert view["status"] == "auth"
        assert view["authMode"] == "signup"


class TestGuardedScreen:

    def test_pending_without_session(self, runtime):
        runtime.state.navigator.navigate("home")
        view = runtime.current_view()
        assert view["status"] == "pending"
        assert view["redirectTo"] == "login"
        assert runtime.current_screen_id == "home"
        assert runtime.apply_pending_redirect() is True
        assert runtime.current_view()["screenId"] == "login"

    async def test_redirect_happens_after_render(self, runtime):
        runtime.state.navigator.navigate("home")
        assert runtime.current_view()["status"] == "pending"
        await asyncio.sleep(0)
        assert runtime.current_screen_id == "login"

    async def test_home_after_login(self, runtime, store):
        store.set_table(APP_ID, "notes", [{"id": "n1", "title": "Milk"}, {"id": "n2", "title": "Eggs"}])
        await login(runtime)
        view = runtime.current_view()
        components = by_id(view)
        assert view["screenId"] == "home"
        assert components["greeting"]["content"] == "Hello Ann"
        assert components["greeting"]["color"] == "#6200ee"
        assert components["notes_list"]["items"] == [
            {"title": "Milk", "recordId": "n1"},
            {"title": "Eggs", "recordId": "n2"},
        ]
        assert "logout_btn" in components


class TestListInteraction:

    async def test_item_action_uses_record_scope(self, runtime, store):
        store.set_table(APP_ID, "notes", [{"id": "n1", "title": "Milk"}, {"id": "n2", "title": "Eggs"}])
        await login(runtime)
        await runtime.trigger("notes_list", "n1")
        assert [n["id"] for n in store.get_table(APP_ID, "notes")] == ["n2"]

    async def test_add_note_appears_in_list(self, runtime):
        await login(runtime)
        runtime.set_field("note_title", "Bread")
        await runtime.trigger("add_note")
        items = by_id(runtime.current_view())["notes_list"]["items"]
        assert [item["title"] for item in items] == ["Bread"]

    async def test_trigger_unknown_component(self, runtime):
        with pytest.raises(ComponentNotFoundError):
            await runtime.trigger("greeting_missing")


class TestHelpers:

    def test_is_visible(self, runtime):
        button = runtime.document.screens["home"].find_component("logout_btn")
        assert is_visible(button, True)
        assert not is_visible(button, False)
        assert is_visible(runtime.document.screens["home"].find_component("greeting"), False)

    def test_resolve_value_keeps_passes_apart(self):
        tokens = {"brand": "{{secret}}"}
        context = {"secret": "x", "ref": "$brand"}
        assert resolve_value("$brand", tokens, context) == "{{secret}}"
        assert resolve_value("{{ref}}", tokens, context) == "$brand"
