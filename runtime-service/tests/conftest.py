"""
Pytest configuration and fixtures for the runtime tests.
"""

import json
import random

import pytest

from uiruntime.core.messaging import MemoryEventSink
from uiruntime.services.api_submitter import ApiSubmitter
from uiruntime.services.auth import AuthSimulator
from uiruntime.services.data_store import DataStore
from uiruntime.services.dispatcher import ActionDispatcher
from uiruntime.services.runtime import AppRuntime

APP_ID = "app-1"


def make_document() -> dict:
    """A small notes app with login, a guarded home screen and an about page."""
    return {
        "version": 1,
        "app": {
            "name": "Notes",
            "theme": {"primaryColor": "$primary", "backgroundColor": "#ffffff"},
            "designTokens": {"primary": "#6200ee", "spacing": 8},
            "databaseSchema": {
                "users": {
                    "fields": {
                        "id": {"type": "string", "primaryKey": True},
                        "email": {"type": "string"},
                        "password": {"type": "string"},
                        "name": {"type": "string"},
                    }
                },
                "notes": {
                    "fields": {
                        "id": {"type": "string", "primaryKey": True},
                        "title": {"type": "string"},
                    }
                },
            },
            "authentication": {
                "userTable": "users",
                "emailField": "email",
                "passwordField": "password",
                "postLoginScreen": "home",
                "authRedirectScreen": "login",
            },
        },
        "initialScreen": "login",
        "screens": {
            "login": {
                "title": "Sign in",
                "components": [
                    {"id": "email", "type": "input", "label": "Email"},
                    {"id": "password", "type": "input", "label": "Password"},
                    {
                        "id": "login_btn",
                        "type": "button",
                        "label": "Sign in",
                        "action": {
                            "type": "auth:login",
                            "fields": {"email": "email", "password": "password"},
                            "onError": {
                                "type": "popup",
                                "title": "Login failed",
                                "message": "Wrong email or password",
                            },
                        },
                    },
                ],
            },
            "home": {
                "title": "Home",
                "requiresAuth": True,
                "components": [
                    {"id": "greeting", "type": "text", "content": "Hello {{session.user.name}}", "color": "$primary"},
                    {"id": "note_title", "type": "input", "label": "Title"},
                    {
                        "id": "add_note",
                        "type": "button",
                        "label": "Add",
                        "action": {
                            "type": "submit",
                            "target": "database",
                            "table": "notes",
                            "fields": {"title": "note_title"},
                        },
                    },
                    {
                        "id": "notes_list",
                        "type": "list",
                        "dataSource": {"table": "notes"},
                        "items": [{"title": "{{title}}"}],
                        "itemAction": {"type": "deleteRecord", "table": "notes", "recordId": "{{id}}"},
                    },
                    {
                        "id": "logout_btn",
                        "type": "button",
                        "label": "Log out",
                        "showIf": "session.isLoggedIn",
                        "action": {"type": "auth:logout"},
                    },
                ],
            },
            "about": {
                "title": "About",
                "components": [
                    {"id": "back", "type": "button", "label": "Back", "action": {"type": "goBack"}},
                ],
            },
        },
    }


ANN = {"id": "u1", "email": "ann@example.com", "password": "secret", "name": "Ann"}


@pytest.fixture
def document_data() -> dict:
    return make_document()


@pytest.fixture
def document_text(document_data) -> str:
    return json.dumps(document_data)


@pytest.fixture
def store() -> DataStore:
    return DataStore()


@pytest.fixture
def events() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def submitter() -> ApiSubmitter:
    return ApiSubmitter(mode="simulated", simulated_delay=0, success_rate=1.0, rng=random.Random(7))


@pytest.fixture
def runtime(store, events, submitter, document_text) -> AppRuntime:
    """Runtime with the notes document loaded and Ann registered."""
    dispatcher = ActionDispatcher(AuthSimulator(store), submitter, max_depth=50)
    runtime = AppRuntime(APP_ID, store, dispatcher=dispatcher, events=events)
    result = runtime.load_document(document_text)
    assert result.ok, result.error
    store.set_table(APP_ID, "users", [ANN])
    events.clear()
    return runtime
