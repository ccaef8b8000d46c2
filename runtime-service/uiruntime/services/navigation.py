"""
Navigation State Machine
========================

Tracks the current screen id of one running app.

States:
    Unresolved        current_screen_id is None (no document yet)
    OnScreen(id)      a screen id, or an auth: pseudo-screen id

Design Principles:
- resolve() is pure: it reads document + session and reports what should be
  shown, including "pending" for a guarded screen
- The redirect for a guarded screen is a separate effect, applied on the
  next event-loop tick, never during resolution
- goBack returns to initialScreen; there is no history stack
- A stale screen id falls back to initialScreen
"""

import asyncio
from typing import Callable, Optional

from uiruntime.models.app_definition import AppDefinition, is_auth_screen_id
from uiruntime.models.runtime import ResolutionKind, ScreenResolution, Session
from uiruntime.utils.logging import get_logger

logger = get_logger(__name__)

ScreenChangeListener = Callable[[Optional[str], Optional[str]], None]


class Navigator:
    """Current-screen holder with auth-guard redirects."""

    def __init__(self, on_change: Optional[ScreenChangeListener] = None):
        self.current_screen_id: Optional[str] = None
        self.pending_redirect: Optional[str] = None
        self._handle: Optional[asyncio.Handle] = None
        self._on_change = on_change

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def navigate(self, target: Optional[str]) -> None:
        """Move to a screen id or auth: pseudo-screen. Cancels a pending redirect."""
        self.cancel_pending_redirect()
        self._set_current(target)

    def go_back(self, document: Optional[AppDefinition]) -> None:
        """Always lands on initialScreen."""
        self.navigate(document.initial_screen if document else None)

    def reset(self) -> None:
        """Back to Unresolved."""
        self.cancel_pending_redirect()
        self._set_current(None)

    def _set_current(self, screen_id: Optional[str]) -> None:
        previous = self.current_screen_id
        if previous == screen_id:
            return
        self.current_screen_id = screen_id
        logger.debug("navigation.screen.changed", extra={"from": previous, "to": screen_id})
        if self._on_change is not None:
            self._on_change(previous, screen_id)

    def sync(self, document: Optional[AppDefinition]) -> bool:
        """
        Repair the current id against a (new) document.

        Unresolved or stale (not a screen, not auth:) ids move to
        initialScreen. Returns True if the current id changed.
        """
        if document is None:
            return False

        current = self.current_screen_id
        if current is not None and (is_auth_screen_id(current) or current in document.screens):
            return False

        target = document.initial_screen
        if target == current:
            return False

        if current is not None:
            logger.info(
                "navigation.screen.fallback",
                extra={"stale_screen": current, "initial_screen": target}
            )
        self.navigate(target)
        return True

    # ------------------------------------------------------------------
    # Resolution (pure)
    # ------------------------------------------------------------------

    def resolve(self, document: Optional[AppDefinition], session: Optional[Session]) -> ScreenResolution:
        """What should be shown right now. Never mutates state."""
        if document is None:
            return ScreenResolution.empty()

        screen_id = self.current_screen_id
        if screen_id is None or (not is_auth_screen_id(screen_id) and screen_id not in document.screens):
            screen_id = document.initial_screen

        if screen_id is None:
            return ScreenResolution.empty()

        if is_auth_screen_id(screen_id):
            return ScreenResolution(kind=ResolutionKind.AUTH, screen_id=screen_id)

        screen = document.get_screen(screen_id)
        if screen is None:
            return ScreenResolution.empty()

        auth = document.auth
        if screen.requires_auth and session is None and auth is not None and auth.auth_redirect_screen:
            return ScreenResolution(
                kind=ResolutionKind.PENDING,
                screen_id=screen_id,
                redirect_to=auth.auth_redirect_screen,
            )

        return ScreenResolution(kind=ResolutionKind.SCREEN, screen_id=screen_id, screen=screen)

    # ------------------------------------------------------------------
    # Redirect effect
    # ------------------------------------------------------------------

    def schedule_redirect(self, target: str) -> None:
        """
        Queue a navigate to target for the next loop tick.

        Without a running loop the redirect stays pending until
        apply_pending_redirect() is called.
        """
        if self.pending_redirect == target:
            return

        self.cancel_pending_redirect()
        self.pending_redirect = target

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            self._handle = loop.call_soon(self.apply_pending_redirect)

        logger.info(
            "navigation.redirect.scheduled",
            extra={"from": self.current_screen_id, "to": target, "deferred": loop is not None}
        )

    def apply_pending_redirect(self) -> bool:
        """Carry out a pending redirect. Returns True if one was applied."""
        target = self.pending_redirect
        self._handle = None
        if target is None:
            return False
        self.pending_redirect = None
        self._set_current(target)
        logger.info("navigation.redirect.applied", extra={"to": target})
        return True

    def cancel_pending_redirect(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.pending_redirect = None
