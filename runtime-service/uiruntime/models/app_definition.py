"""
App Definition Data Model
=========================

Typed view of the JSON app document: app metadata, theme and design tokens,
database schema, authentication settings, screens and their component trees.

Design Principles:
- JSON keys stay camelCase (aliases), Python attributes are snake_case
- Unknown keys are kept (extra="allow") so newer documents still load
- Strict types: malformed required fields fail validation instead of
  being coerced
- Missing screens / initialScreen is a valid, empty app
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


AUTH_SCREEN_PREFIX = "auth:"


def is_auth_screen_id(screen_id: Optional[str]) -> bool:
    """True for reserved pseudo-screens such as auth:login / auth:signup."""
    return isinstance(screen_id, str) and screen_id.startswith(AUTH_SCREEN_PREFIX)


class DocumentModel(BaseModel):
    """Base for every document node"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        strict=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# DATABASE SCHEMA
# ============================================================================

class FieldDefinition(DocumentModel):
    """A single column in a table schema"""
    type: str = "string"
    primary_key: bool = False
    default: Any = None
    description: Optional[str] = None


class TableSchema(DocumentModel):
    fields: Dict[str, FieldDefinition] = Field(default_factory=dict)


# ============================================================================
# APP CONFIG
# ============================================================================

class AuthenticationConfig(DocumentModel):
    """Simulated login settings: which table holds users and where to go"""
    enabled: bool = True
    user_table: str = "users"
    email_field: str = "email"
    password_field: str = "password"
    post_login_screen: Optional[str] = None
    auth_redirect_screen: Optional[str] = None


class AppConfig(DocumentModel):
    name: str = ""
    theme: Dict[str, Any] = Field(default_factory=dict)
    design_tokens: Dict[str, Any] = Field(default_factory=dict)
    database_schema: Dict[str, TableSchema] = Field(default_factory=dict)
    authentication: Optional[AuthenticationConfig] = None

    @property
    def auth(self) -> Optional[AuthenticationConfig]:
        """Authentication config, or None when absent or disabled."""
        if self.authentication is None or not self.authentication.enabled:
            return None
        return self.authentication


# ============================================================================
# COMPONENTS & SCREENS
# ============================================================================

class DataSource(DocumentModel):
    table: str


class Component(DocumentModel):
    """
    Polymorphic UI node.

    Type-specific properties (text, label, placeholder, options, style, ...)
    live in the model extras. Container types own child `components`.
    """
    id: str
    type: str
    components: List["Component"] = Field(default_factory=list)
    action: Optional[Dict[str, Any]] = None
    show_if: Optional[str] = None

    # list
    data_source: Optional[DataSource] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)
    item_action: Optional[Dict[str, Any]] = None
    empty_message: Optional[str] = None

    def walk(self) -> Iterator["Component"]:
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.components:
            yield from child.walk()

    def prop(self, name: str, default: Any = None) -> Any:
        """Read a type-specific property kept in extras."""
        return (self.model_extra or {}).get(name, default)


class Screen(DocumentModel):
    id: Optional[str] = None
    title: str = ""
    requires_auth: bool = False
    components: List[Component] = Field(default_factory=list)
    background_color: Optional[str] = None

    def walk(self) -> Iterator[Component]:
        for component in self.components:
            yield from component.walk()

    def find_component(self, component_id: str) -> Optional[Component]:
        for component in self.walk():
            if component.id == component_id:
                return component
        return None


class AppDefinition(DocumentModel):
    """Root of the app document"""
    version: Optional[Union[str, int, float]] = None
    app: AppConfig = Field(default_factory=AppConfig)
    screens: Dict[str, Screen] = Field(default_factory=dict)
    initial_screen: Optional[str] = None

    @model_validator(mode="after")
    def fill_screen_ids(self) -> "AppDefinition":
        """Screens written without an id take their key."""
        for screen_id, screen in self.screens.items():
            if screen.id is None:
                screen.id = screen_id
        return self

    @field_validator("initial_screen")
    @classmethod
    def validate_initial_screen(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("initialScreen must not be blank")
        return v

    @model_validator(mode="after")
    def check_initial_screen_exists(self) -> "AppDefinition":
        """initialScreen must name a screen unless it is an auth: pseudo-screen."""
        if (
            self.initial_screen is not None
            and self.screens
            and not is_auth_screen_id(self.initial_screen)
            and self.initial_screen not in self.screens
        ):
            raise ValueError(
                f"initialScreen '{self.initial_screen}' is not defined in screens"
            )
        return self

    def get_screen(self, screen_id: Optional[str]) -> Optional[Screen]:
        if screen_id is None:
            return None
        return self.screens.get(screen_id)

    def iter_components(self) -> Iterator[Tuple[str, Component]]:
        """(screen_id, component) for every component in the document."""
        for screen_id, screen in self.screens.items():
            for component in screen.walk():
                yield screen_id, component

    @property
    def design_tokens(self) -> Dict[str, Any]:
        return self.app.design_tokens

    @property
    def auth(self) -> Optional[AuthenticationConfig]:
        return self.app.auth

    @property
    def table_names(self) -> List[str]:
        return list(self.app.database_schema.keys())
