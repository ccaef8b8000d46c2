"""
Action Dispatcher
=================

Interprets action descriptors against a RuntimeState.

Design Principles:
- One handler per action model, looked up in a table built at init
- Malformed or unknown actions are logged and ignored, never raised
- Follow-up actions (onSuccess / onError) run through the same entry point
  with depth + 1; a chain longer than the configured bound stops with
  ActionChainError. Effects applied before that point are kept
- auth:* actions are silent no-ops when the document has no
  authentication settings
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Type

from uiruntime.config import settings
from uiruntime.models.actions import (
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
from uiruntime.models.runtime import DispatchResult, PopupState
from uiruntime.services.api_submitter import ApiSubmitter, SubmitConfigurationError, collect_fields
from uiruntime.services.auth import AuthSimulator
from uiruntime.services.data_store import DataStoreError
from uiruntime.services.state import RuntimeState
from uiruntime.utils.logging import get_logger, log_context
from uiruntime.utils.templates import interpolate, resolve_template

logger = get_logger(__name__)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ActionChainError(Exception):
    """Raised when follow-up actions nest deeper than the configured bound"""

    def __init__(self, depth: int, limit: int):
        super().__init__(f"Action chain exceeded {limit} dispatches (depth {depth})")
        self.depth = depth
        self.limit = limit


Handler = Callable[[Any, RuntimeState, int, DispatchResult, Optional[Dict[str, Any]]], Awaitable[None]]


# ============================================================================
# DISPATCHER
# ============================================================================

class ActionDispatcher:
    """
    Usage:
        dispatcher = ActionDispatcher(AuthSimulator(store), ApiSubmitter())
        result = await dispatcher.dispatch({"type": "navigate", "target": "home"}, state)
    """

    def __init__(
        self,
        auth: AuthSimulator,
        submitter: ApiSubmitter,
        max_depth: Optional[int] = None,
    ):
        self.auth = auth
        self.submitter = submitter
        self.max_depth = max_depth or settings.max_action_chain_depth
        self._handlers: Dict[Type[Any], Handler] = {
            NavigateAction: self._handle_navigate,
            PopupAction: self._handle_popup,
            GoBackAction: self._handle_go_back,
            SubmitAction: self._handle_submit,
            DeleteRecordAction: self._handle_delete_record,
            LoginAction: self._handle_login,
            SignupAction: self._handle_signup,
            LogoutAction: self._handle_logout,
            SetValueAction: self._handle_set_value,
            OpenUrlAction: self._handle_open_url,
        }

    async def dispatch(
        self,
        raw_action: Any,
        state: RuntimeState,
        scope: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """
        Run an action and its follow-ups. Never raises.

        Args:
            raw_action: action dict as written in the document
            state: the app instance to act on
            scope: record fields for actions raised from a list item
        """
        result = DispatchResult()
        with log_context(instance_id=state.app_id):
            try:
                await self._dispatch(raw_action, state, 0, result, scope)
            except ActionChainError as e:
                logger.error(
                    "dispatch.chain.exceeded",
                    extra={"depth": e.depth, "limit": e.limit, "handled": result.handled},
                )
                result.error = str(e)
        return result

    async def _dispatch(
        self,
        raw_action: Any,
        state: RuntimeState,
        depth: int,
        result: DispatchResult,
        scope: Optional[Dict[str, Any]],
    ) -> None:
        if raw_action is None:
            return

        if depth >= self.max_depth:
            raise ActionChainError(depth, self.max_depth)

        try:
            action = parse_action(raw_action)
        except UnknownActionError as e:
            logger.warning("dispatch.action.unknown", extra={"type": e.action_type})
            result.ignored.append(e.action_type)
            return
        except InvalidActionError as e:
            logger.warning("dispatch.action.invalid", message=str(e), extra={"type": e.action_type})
            result.ignored.append(e.action_type or "invalid")
            return

        handler = self._handlers[type(action)]
        result.handled += 1
        logger.debug("dispatch.action.started", extra={"type": action.type, "depth": depth})

        try:
            await handler(action, state, depth, result, scope)
        except ActionChainError:
            raise
        except (DataStoreError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                "dispatch.action.failed",
                extra={"type": action.type, "error_type": type(e).__name__},
                exc_info=e,
            )

    async def _follow_up(
        self,
        raw_action: Optional[Dict[str, Any]],
        state: RuntimeState,
        depth: int,
        result: DispatchResult,
        scope: Optional[Dict[str, Any]],
    ) -> None:
        if raw_action is not None:
            await self._dispatch(raw_action, state, depth + 1, result, scope)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _handle_navigate(self, action: NavigateAction, state, depth, result, scope) -> None:
        state.navigator.navigate(action.target)

    async def _handle_go_back(self, action: GoBackAction, state, depth, result, scope) -> None:
        state.navigator.go_back(state.document)

    async def _handle_popup(self, action: PopupAction, state, depth, result, scope) -> None:
        state.popup = PopupState(
            title=action.title,
            message=action.message,
            variant=action.variant,
            buttons=[button.model_dump(by_alias=True, exclude_none=True) for button in action.buttons],
        )
        state.publish("popup.opened", title=action.title, variant=action.variant)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    async def _handle_submit(self, action: SubmitAction, state, depth, result, scope) -> None:
        if action.is_database:
            await self._submit_to_database(action, state, depth, result, scope)
        else:
            await self._submit_to_api(action, state, depth, result, scope)

    async def _submit_to_database(self, action: SubmitAction, state, depth, result, scope) -> None:
        if not action.table:
            logger.warning("dispatch.submit.no_table", extra={"fields": list(action.fields)})
            return

        values = collect_fields(action.fields, state.form.values)
        record = {name: value for name, value in values.items() if value is not None}
        stored = state.store.insert(state.app_id, action.table, record)

        state.form.reset(action.fields.values())
        state.publish("record.created", table=action.table, record_id=stored["id"])
        logger.info(
            "dispatch.submit.stored",
            extra={"table": action.table, "record_id": stored["id"]},
        )

        await self._follow_up(action.on_success, state, depth, result, scope)

    async def _submit_to_api(self, action: SubmitAction, state, depth, result, scope) -> None:
        try:
            outcome = await self.submitter.submit(
                action,
                state.form.values,
                state.template_context(scope),
            )
        except SubmitConfigurationError as e:
            logger.warning("dispatch.submit.misconfigured", message=str(e))
            return

        if outcome.superseded:
            return

        if outcome.success:
            state.form.reset(action.fields.values())
            state.publish("submit.succeeded", endpoint=action.endpoint, status_code=outcome.status_code)
            await self._follow_up(action.on_success, state, depth, result, scope)
        else:
            state.publish("submit.failed", endpoint=action.endpoint, error=outcome.error)
            await self._follow_up(action.on_error, state, depth, result, scope)

    async def _handle_delete_record(self, action: DeleteRecordAction, state, depth, result, scope) -> None:
        record_id = resolve_template(str(action.record_id), state.template_context(scope))
        removed = state.store.delete_by_id(state.app_id, action.table, record_id)
        if removed:
            state.publish("record.deleted", table=action.table, record_id=str(record_id))

    async def _handle_set_value(self, action: SetValueAction, state, depth, result, scope) -> None:
        state.form.update_field(action.target_id, action.value)

    async def _handle_open_url(self, action: OpenUrlAction, state, depth, result, scope) -> None:
        url = interpolate(action.url, state.template_context(scope))
        state.publish("url.open", url=url, external=action.external)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def _handle_login(self, action: LoginAction, state, depth, result, scope) -> None:
        config = state.document.auth if state.document else None
        if config is None:
            logger.debug("dispatch.auth.skipped", extra={"type": action.type})
            return

        email = state.form.get(action.fields.email)
        password = state.form.get(action.fields.password)
        user = self.auth.authenticate(state.app_id, config, email, password)

        if user is None:
            logger.info("auth.login.failed", extra={"table": config.user_table})
            await self._follow_up(action.on_error, state, depth, result, scope)
            return

        state.sessions.login(user)
        state.publish("session.started", user_id=user.get("id"), via="login")
        if config.post_login_screen:
            state.navigator.navigate(config.post_login_screen)
        state.form.reset()
        logger.info("auth.login.succeeded", extra={"user_id": user.get("id")})

    async def _handle_signup(self, action: SignupAction, state, depth, result, scope) -> None:
        config = state.document.auth if state.document else None
        if config is None:
            logger.debug("dispatch.auth.skipped", extra={"type": action.type})
            return

        values = collect_fields(action.fields, state.form.values)
        email = values.get(config.email_field)

        if email in (None, "") or self.auth.email_taken(state.app_id, config, email):
            logger.info(
                "auth.signup.rejected",
                extra={"reason": "missing_email" if email in (None, "") else "email_taken"},
            )
            await self._follow_up(action.on_error, state, depth, result, scope)
            return

        user = self.auth.register(state.app_id, config, values)
        state.sessions.login(user)
        state.publish("record.created", table=config.user_table, record_id=user["id"])
        state.publish("session.started", user_id=user["id"], via="signup")
        if config.post_login_screen:
            state.navigator.navigate(config.post_login_screen)
        state.form.reset()
        logger.info("auth.signup.succeeded", extra={"user_id": user["id"]})

    async def _handle_logout(self, action: LogoutAction, state, depth, result, scope) -> None:
        config = state.document.auth if state.document else None
        if config is None:
            logger.debug("dispatch.auth.skipped", extra={"type": action.type})
            return

        state.sessions.logout()
        state.publish("session.ended")

        if action.on_success is not None:
            await self._follow_up(action.on_success, state, depth, result, scope)
        else:
            state.navigator.navigate(state.document.initial_screen)
