"""
Runtime state types: session, popup, screen resolution, dispatch outcome.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from uiruntime.models.app_definition import Screen


@dataclass
class Session:
    """Simulated signed-in user. Unrelated to any platform identity."""
    user: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"user": copy.deepcopy(self.user), "isLoggedIn": True}


def session_context(session: Optional[Session]) -> Dict[str, Any]:
    """Session as exposed to {{session.*}} bindings."""
    if session is None:
        return {"user": None, "isLoggedIn": False}
    return session.to_dict()


@dataclass
class PopupState:
    title: Optional[str]
    message: str
    variant: str = "alert"
    buttons: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "message": self.message,
            "variant": self.variant,
            "buttons": copy.deepcopy(self.buttons),
        }


class ResolutionKind(str, Enum):
    """Outcome of resolving the current screen"""
    EMPTY = "empty"        # no document, or no screen to show
    SCREEN = "screen"      # a renderable screen
    AUTH = "auth"          # auth:login / auth:signup pseudo-screen
    PENDING = "pending"    # guarded screen, redirect scheduled


@dataclass
class ScreenResolution:
    kind: ResolutionKind
    screen_id: Optional[str] = None
    screen: Optional[Screen] = None
    redirect_to: Optional[str] = None

    @classmethod
    def empty(cls) -> "ScreenResolution":
        return cls(kind=ResolutionKind.EMPTY)

    @property
    def is_pending(self) -> bool:
        return self.kind is ResolutionKind.PENDING


@dataclass
class DispatchResult:
    """
    What a top-level dispatch did.

    `handled` counts actions whose handler ran (follow-ups included).
    `error` is set when the chain was cut short (depth bound exceeded).
    """
    handled: int = 0
    ignored: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "handled": self.handled, "ignored": list(self.ignored), "error": self.error}
