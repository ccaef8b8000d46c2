"""
Navigation state machine tests, including the deferred auth redirect.
"""

import asyncio
import json

from uiruntime.models.runtime import ResolutionKind, Session
from uiruntime.services.document_parser import parse_document
from uiruntime.services.navigation import Navigator


def load(document_data):
    result = parse_document(json.dumps(document_data))
    assert result.ok, result.error
    return result.document


class TestResolve:

    def test_no_document_is_empty(self):
        assert Navigator().resolve(None, None).kind is ResolutionKind.EMPTY

    def test_unresolved_shows_initial_screen(self, document_data):
        resolution = Navigator().resolve(load(document_data), None)
        assert resolution.kind is ResolutionKind.SCREEN
        assert resolution.screen_id == "login"

    def test_stale_id_falls_back_to_initial_screen(self, document_data):
        navigator = Navigator()
        navigator.navigate("deleted-screen")
        assert navigator.resolve(load(document_data), None).screen_id == "login"

    def test_auth_pseudo_screen(self, document_data):
        navigator = Navigator()
        navigator.navigate("auth:signup")
        resolution = navigator.resolve(load(document_data), None)
        assert resolution.kind is ResolutionKind.AUTH
        assert resolution.screen_id == "auth:signup"

    def test_guarded_screen_without_session_is_pending(self, document_data):
        navigator = Navigator()
        navigator.navigate("home")
        resolution = navigator.resolve(load(document_data), None)
        assert resolution.is_pending
        assert resolution.redirect_to == "login"
        assert navigator.current_screen_id == "home"

    def test_guarded_screen_with_session(self, document_data):
        navigator = Navigator()
        navigator.navigate("home")
        resolution = navigator.resolve(load(document_data), Session(user={"id": "u1"}))
        assert resolution.kind is ResolutionKind.SCREEN
        assert resolution.screen.title == "Home"

    def test_guard_ignored_without_authentication(self, document_data):
        del document_data["app"]["authentication"]
        navigator = Navigator()
        navigator.navigate("home")
        assert navigator.resolve(load(document_data), None).kind is ResolutionKind.SCREEN

    def test_empty_screens(self):
        assert Navigator().resolve(load({"screens": {}}), None).kind is ResolutionKind.EMPTY


class TestTransitions:

    def test_sync_moves_unresolved_to_initial(self, document_data):
        navigator = Navigator()
        assert navigator.sync(load(document_data)) is True
        assert navigator.current_screen_id == "login"
        assert navigator.sync(load(document_data)) is False

    def test_sync_repairs_stale_id_after_document_change(self, document_data):
        navigator = Navigator()
        navigator.navigate("about")
        del document_data["screens"]["about"]
        assert navigator.sync(load(document_data)) is True
        assert navigator.current_screen_id == "login"

    def test_sync_keeps_auth_pseudo_screen(self, document_data):
        navigator = Navigator()
        navigator.navigate("auth:login")
        assert navigator.sync(load(document_data)) is False

    def test_go_back_returns_to_initial_screen(self, document_data):
        navigator = Navigator()
        navigator.navigate("about")
        navigator.navigate("home")
        navigator.go_back(load(document_data))
        assert navigator.current_screen_id == "login"

    def test_change_listener(self):
        changes = []
        navigator = Navigator(on_change=lambda prev, cur: changes.append((prev, cur)))
        navigator.navigate("a")
        navigator.navigate("a")
        navigator.navigate("b")
        navigator.reset()
        assert changes == [(None, "a"), ("a", "b"), ("b", None)]


class TestRedirect:

    def test_redirect_waits_without_loop(self):
        navigator = Navigator()
        navigator.navigate("home")
        navigator.schedule_redirect("login")
        assert navigator.current_screen_id == "home"
        assert navigator.pending_redirect == "login"
        assert navigator.apply_pending_redirect() is True
        assert navigator.current_screen_id == "login"
        assert navigator.apply_pending_redirect() is False

    async def test_redirect_applies_on_next_tick(self):
        navigator = Navigator()
        navigator.navigate("home")
        navigator.schedule_redirect("login")
        assert navigator.current_screen_id == "home"
        await asyncio.sleep(0)
        assert navigator.current_screen_id == "login"
        assert navigator.pending_redirect is None

    async def test_navigate_cancels_pending_redirect(self):
        navigator = Navigator()
        navigator.navigate("home")
        navigator.schedule_redirect("login")
        navigator.navigate("about")
        await asyncio.sleep(0)
        assert navigator.current_screen_id == "about"
