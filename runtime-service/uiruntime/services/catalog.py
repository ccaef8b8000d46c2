"""
App catalog: the user's list of apps, with undo/redo.

Names are trimmed and must not be blank. The last remaining app cannot
be deleted.
"""
import json
import uuid
from typing import Any, Dict, List, Optional

from uiruntime.services.history import History

AppEntry = Dict[str, Any]

BLANK_APP_DOCUMENT = json.dumps(
    {
        "version": "1.0",
        "app": {
            "name": "New App",
            "theme": {
                "primaryColor": "#007AFF",
                "backgroundColor": "#FFFFFF",
                "textColor": "#111827",
            },
        },
        "screens": {
            "home": {
                "id": "home",
                "title": "Home",
                "layout": "vertical",
                "padding": 20,
                "components": [
                    {
                        "type": "text",
                        "id": "welcome_text",
                        "content": "Welcome to your new app!",
                        "fontSize": 24,
                        "fontWeight": "bold",
                        "textAlign": "center",
                    }
                ],
            }
        },
        "initialScreen": "home",
    },
    indent=2,
)


class AppNotFoundError(LookupError):
    pass


class AppCatalogError(ValueError):
    """Raised for a blank app name or when deleting the last app"""
    pass


def _clean_name(name: Optional[str]) -> str:
    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned:
        raise AppCatalogError("App name must not be blank")
    return cleaned


class AppCatalog:
    """Ordered list of {instance_id, name} entries under History."""

    def __init__(self, apps: Optional[List[AppEntry]] = None, limit: Optional[int] = None):
        self.history: History[List[AppEntry]] = History(list(apps or []), limit=limit)

    @property
    def apps(self) -> List[AppEntry]:
        return self.history.present

    def get(self, instance_id: str) -> AppEntry:
        for app in self.history.present:
            if app["instance_id"] == instance_id:
                return app
        raise AppNotFoundError(f"App not found: {instance_id}")

    def contains(self, instance_id: str) -> bool:
        return any(app["instance_id"] == instance_id for app in self.history.present)

    def create(self, name: str, instance_id: Optional[str] = None) -> AppEntry:
        entry = {"instance_id": instance_id or uuid.uuid4().hex, "name": _clean_name(name)}
        self.history.set_state(lambda apps: [*apps, entry])
        return entry

    def rename(self, instance_id: str, name: str) -> AppEntry:
        """Rename an app. An unchanged name is not a new undo step."""
        current = self.get(instance_id)
        name = _clean_name(name)
        if name == current["name"]:
            return current
        self.history.set_state(
            lambda apps: [{**a, "name": name} if a["instance_id"] == instance_id else a for a in apps]
        )
        return self.get(instance_id)

    def ensure_deletable(self, instance_id: str) -> None:
        self.get(instance_id)
        if len(self.history.present) <= 1:
            raise AppCatalogError("Cannot delete the last app")

    def delete(self, instance_id: str) -> None:
        self.ensure_deletable(instance_id)
        self.history.set_state(lambda apps: [a for a in apps if a["instance_id"] != instance_id])

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()
