"""
Session / Auth Simulator
========================

Emulates sign-in for the previewed app against its own user table in the
data store. Plain-text, case-sensitive comparison: this is a preview
emulation, not a credential store.
"""

import copy
from typing import Any, Dict, Optional

from uiruntime.models.app_definition import AuthenticationConfig
from uiruntime.models.runtime import Session
from uiruntime.services.data_store import DataStore, Record
from uiruntime.utils.logging import get_logger

logger = get_logger(__name__)


class AuthSimulator:
    """Credential checks and sign-up against the configured user table."""

    def __init__(self, store: DataStore):
        self.store = store

    def authenticate(
        self,
        app_id: str,
        config: AuthenticationConfig,
        email: Any,
        password: Any,
    ) -> Optional[Record]:
        """Return the user whose email and password fields both match exactly."""
        if email is None or password is None:
            return None
        user = self.store.find_one(
            app_id,
            config.user_table,
            **{config.email_field: email, config.password_field: password},
        )
        logger.debug(
            "auth.credentials.checked",
            extra={"app_id": app_id, "table": config.user_table, "matched": user is not None}
        )
        return user

    def email_taken(self, app_id: str, config: AuthenticationConfig, email: Any) -> bool:
        return self.store.find_one(app_id, config.user_table, **{config.email_field: email}) is not None

    def register(self, app_id: str, config: AuthenticationConfig, values: Dict[str, Any]) -> Record:
        """Insert a new user built from values plus a generated id."""
        user = {key: value for key, value in values.items() if key != "id"}
        return self.store.insert(app_id, config.user_table, user)


class SessionManager:
    """Holds the simulated session of one running app."""

    def __init__(self):
        self.session: Optional[Session] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def user(self) -> Optional[Record]:
        return copy.deepcopy(self.session.user) if self.session else None

    def login(self, user: Record) -> Session:
        self.session = Session(user=copy.deepcopy(user))
        return self.session

    def logout(self) -> None:
        self.session = None
