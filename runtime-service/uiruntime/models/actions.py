"""
Action descriptors.

Every action kind is its own model; `Action` is the discriminated union on
the `type` tag. Follow-up actions (onSuccess / onError / popup buttons) are
kept as raw dicts and parsed only when they are dispatched, so a malformed
follow-up degrades to a warning at that point instead of invalidating the
whole parent action.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel


RawAction = Dict[str, Any]


class ActionModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class NavigateAction(ActionModel):
    type: Literal["navigate"]
    target: str = Field(min_length=1)


class PopupButton(ActionModel):
    label: str = "OK"
    action: Optional[RawAction] = None


class PopupAction(ActionModel):
    type: Literal["popup"]
    title: Optional[str] = None
    message: str = ""
    variant: str = "alert"
    buttons: List[PopupButton] = Field(default_factory=list)


class GoBackAction(ActionModel):
    type: Literal["goBack"]


class SubmitAction(ActionModel):
    type: Literal["submit"]
    target: Optional[Literal["database", "api"]] = None
    table: Optional[str] = None
    endpoint: Optional[str] = None
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    fields: Dict[str, str] = Field(default_factory=dict)
    on_success: Optional[RawAction] = None
    on_error: Optional[RawAction] = None

    @property
    def is_database(self) -> bool:
        return self.target == "database"


class DeleteRecordAction(ActionModel):
    type: Literal["deleteRecord"]
    table: str
    record_id: Union[str, int]


class LoginFields(ActionModel):
    email: str
    password: str


class LoginAction(ActionModel):
    type: Literal["auth:login"]
    fields: LoginFields
    on_error: Optional[RawAction] = None


class SignupAction(ActionModel):
    type: Literal["auth:signup"]
    fields: Dict[str, str] = Field(default_factory=dict)
    on_error: Optional[RawAction] = None


class LogoutAction(ActionModel):
    type: Literal["auth:logout"]
    on_success: Optional[RawAction] = None


class SetValueAction(ActionModel):
    type: Literal["setValue"]
    target_id: str
    value: Any = None


class OpenUrlAction(ActionModel):
    type: Literal["openUrl"]
    url: str
    external: bool = True


Action = Annotated[
    Union[
        NavigateAction,
        PopupAction,
        GoBackAction,
        SubmitAction,
        DeleteRecordAction,
        LoginAction,
        SignupAction,
        LogoutAction,
        SetValueAction,
        OpenUrlAction,
    ],
    Field(discriminator="type"),
]

ACTION_TYPES = (
    "navigate",
    "popup",
    "goBack",
    "submit",
    "deleteRecord",
    "auth:login",
    "auth:signup",
    "auth:logout",
    "setValue",
    "openUrl",
)

_action_adapter: TypeAdapter = TypeAdapter(Action)


class InvalidActionError(ValueError):
    """Raised when an action payload cannot be interpreted"""

    def __init__(self, message: str, action_type: Optional[str] = None):
        super().__init__(message)
        self.action_type = action_type


class UnknownActionError(InvalidActionError):
    """Raised for a well-formed payload whose type tag is not handled"""
    pass


def parse_action(raw: Any) -> Action:
    """
    Turn a raw action dict into its typed model.

    Raises:
        InvalidActionError: not a dict, missing type, or bad fields
        UnknownActionError: type tag is not a known action kind
    """
    if not isinstance(raw, dict):
        raise InvalidActionError(f"Action must be an object, got {type(raw).__name__}")

    action_type = raw.get("type")
    if not isinstance(action_type, str) or not action_type:
        raise InvalidActionError("Action is missing its 'type'")

    if action_type not in ACTION_TYPES:
        raise UnknownActionError(f"Unknown action type: {action_type}", action_type)

    try:
        return _action_adapter.validate_python(raw)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or err['loc'][0]}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidActionError(f"Malformed {action_type} action: {errors}", action_type) from e
