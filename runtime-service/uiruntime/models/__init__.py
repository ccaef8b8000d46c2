"""
Models package - app document, actions, runtime state and catalogs.
"""

from .app_definition import (
    AUTH_SCREEN_PREFIX,
    AppConfig,
    AppDefinition,
    AuthenticationConfig,
    Component,
    DataSource,
    FieldDefinition,
    Screen,
    TableSchema,
    is_auth_screen_id,
)
from .actions import (
    ACTION_TYPES,
    Action,
    DeleteRecordAction,
    GoBackAction,
    InvalidActionError,
    LoginAction,
    LogoutAction,
    NavigateAction,
    OpenUrlAction,
    PopupAction,
    SetValueAction,
    SignupAction,
    SubmitAction,
    UnknownActionError,
    parse_action,
)
from .runtime import (
    DispatchResult,
    PopupState,
    ResolutionKind,
    ScreenResolution,
    Session,
    session_context,
)

__all__ = [
    "AUTH_SCREEN_PREFIX",
    "AppConfig",
    "AppDefinition",
    "AuthenticationConfig",
    "Component",
    "DataSource",
    "FieldDefinition",
    "Screen",
    "TableSchema",
    "is_auth_screen_id",
    "ACTION_TYPES",
    "Action",
    "DeleteRecordAction",
    "GoBackAction",
    "InvalidActionError",
    "LoginAction",
    "LogoutAction",
    "NavigateAction",
    "OpenUrlAction",
    "PopupAction",
    "SetValueAction",
    "SignupAction",
    "SubmitAction",
    "UnknownActionError",
    "parse_action",
    "DispatchResult",
    "PopupState",
    "ResolutionKind",
    "ScreenResolution",
    "Session",
    "session_context",
]
