"""
REST API endpoints for running app instances.

Each instance is one app document being previewed: its text is edited
with undo/redo, and user events (field edits, button presses, popup
buttons) are dispatched against its runtime.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from uiruntime.models.snippets import get_snippet
from uiruntime.services.document_parser import ParseResult
from uiruntime.services.catalog import AppCatalogError, AppNotFoundError
from uiruntime.services.data_store import DuplicateRecordError
from uiruntime.services.editor import DocumentEditError, DocumentEditor
from uiruntime.services.registry import InstanceNotOpenError, RuntimeRegistry
from uiruntime.services.runtime import ComponentNotFoundError
from uiruntime.services.snippets import SnippetInsertError
from uiruntime.utils.logging import get_logger, log_context

router = APIRouter(prefix="/instances", tags=["Instances"])
logger = get_logger(__name__)


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class OpenInstanceRequest(BaseModel):
    """Document used when nothing is stored for the instance yet"""
    document: str = ""
    activate: bool = True


class DocumentTextRequest(BaseModel):
    text: str


class DispatchRequest(BaseModel):
    action: Any
    scope: Optional[Dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "action": {"type": "navigate", "target": "home"},
                "scope": None,
            }
        }


class TriggerRequest(BaseModel):
    record_id: Optional[str] = None


class FormUpdateRequest(BaseModel):
    values: Dict[str, Any]


class SnippetRequest(BaseModel):
    """Either raw snippet JSON or the key of a built-in snippet"""
    snippet_json: Optional[str] = None
    snippet_key: Optional[str] = None
    screen_id: Optional[str] = None


class RenameRequest(BaseModel):
    name: str


class TableRequest(BaseModel):
    records: List[Dict[str, Any]]


class SchemaRequest(BaseModel):
    database_schema: Dict[str, Any] = Field(..., alias="databaseSchema")

    model_config = {"populate_by_name": True}


class DocumentResponse(BaseModel):
    """State of the instance document after an edit"""
    instance_id: str
    text: str
    valid: bool
    error: Optional[str] = None
    current_screen_id: Optional[str] = None
    can_undo: bool
    can_redo: bool
    warnings: List[Dict[str, str]] = []

    class Config:
        json_schema_extra = {
            "example": {
                "instance_id": "demo",
                "text": "{\"version\": 1, ...}",
                "valid": True,
                "error": None,
                "current_screen_id": "home",
                "can_undo": True,
                "can_redo": False,
                "warnings": [],
            }
        }


class SnippetResponse(DocumentResponse):
    inserted_ids: List[str]
    screen_id: str


class DispatchResponse(BaseModel):
    handled: int
    ignored: List[str]
    error: Optional[str] = None
    view: Dict[str, Any]


class SessionResponse(BaseModel):
    is_logged_in: bool
    user: Optional[Dict[str, Any]] = None


# ============================================================================
# HELPERS
# ============================================================================

def get_registry(request: Request) -> RuntimeRegistry:
    return request.app.state.registry


def _editor(registry: RuntimeRegistry, instance_id: str) -> DocumentEditor:
    try:
        return registry.get(instance_id)
    except InstanceNotOpenError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _document_response(editor: DocumentEditor, result: Optional[ParseResult] = None) -> DocumentResponse:
    runtime = editor.runtime
    error = result.error if result is not None else runtime.error
    return DocumentResponse(
        instance_id=runtime.app_id,
        text=editor.text,
        valid=error is None and runtime.document is not None,
        error=error,
        current_screen_id=runtime.current_screen_id,
        can_undo=editor.can_undo,
        can_redo=editor.can_redo,
        warnings=[w.to_dict() for w in runtime.warnings],
    )


def _dispatch_response(editor: DocumentEditor, result) -> DispatchResponse:
    return DispatchResponse(
        handled=result.handled,
        ignored=result.ignored,
        error=result.error,
        view=editor.runtime.current_view(),
    )


# ============================================================================
# INSTANCE LIFECYCLE
# ============================================================================

@router.get("")
async def list_instances(registry: RuntimeRegistry = Depends(get_registry)) -> Dict[str, Any]:
    return {
        "apps": registry.catalog.apps,
        "open": registry.open_instances,
        "active": registry.active_instance_id,
        "stored": await registry.persistence.list_app_instances(),
    }


@router.post("/{instance_id}/open", response_model=DocumentResponse)
async def open_instance(
    instance_id: str,
    body: OpenInstanceRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> DocumentResponse:
    with log_context(instance_id=instance_id):
        if body.activate:
            editor = await registry.activate(instance_id, body.document)
        else:
            editor = await registry.open_instance(instance_id, body.document)
        logger.info("api.instance.opened", extra={"active": body.activate})
        return _document_response(editor)


@router.post("/{instance_id}/close", status_code=status.HTTP_204_NO_CONTENT)
async def close_instance(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> None:
    _editor(registry, instance_id)
    await registry.close_instance(instance_id)


@router.patch("/{instance_id}")
async def rename_instance(
    instance_id: str,
    body: RenameRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    try:
        return registry.rename_instance(instance_id, body.name)
    except AppNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AppCatalogError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.delete("/{instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_instance(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> None:
    try:
        await registry.delete_instance(instance_id)
    except AppCatalogError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# ============================================================================
# DOCUMENT EDITING
# ============================================================================

@router.get("/{instance_id}/document", response_model=DocumentResponse)
async def get_document(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> DocumentResponse:
    return _document_response(_editor(registry, instance_id))


@router.put("/{instance_id}/document", response_model=DocumentResponse)
async def set_document(
    instance_id: str,
    body: DocumentTextRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> DocumentResponse:
    editor = _editor(registry, instance_id)
    result = editor.set_text(body.text)
    return _document_response(editor, result)


@router.post("/{instance_id}/undo", response_model=DocumentResponse)
async def undo(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> DocumentResponse:
    editor = _editor(registry, instance_id)
    return _document_response(editor, editor.undo())


@router.post("/{instance_id}/redo", response_model=DocumentResponse)
async def redo(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> DocumentResponse:
    editor = _editor(registry, instance_id)
    return _document_response(editor, editor.redo())


@router.post("/{instance_id}/snippets", response_model=SnippetResponse)
async def insert_snippet(
    instance_id: str,
    body: SnippetRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> SnippetResponse:
    editor = _editor(registry, instance_id)

    snippet_json = body.snippet_json
    if snippet_json is None and body.snippet_key is not None:
        snippet = get_snippet(body.snippet_key)
        if snippet is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Snippet not found: {body.snippet_key}")
        snippet_json = snippet["json"]
    if snippet_json is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="snippet_json or snippet_key is required")

    try:
        insertion = editor.insert_snippet(snippet_json, body.screen_id)
    except SnippetInsertError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    response = _document_response(editor)
    return SnippetResponse(
        **response.model_dump(),
        inserted_ids=insertion.inserted_ids,
        screen_id=insertion.screen_id,
    )


@router.put("/{instance_id}/schema", response_model=DocumentResponse)
async def update_schema(
    instance_id: str,
    body: SchemaRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> DocumentResponse:
    editor = _editor(registry, instance_id)
    try:
        result = editor.update_database_schema(body.database_schema)
    except DocumentEditError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _document_response(editor, result)


# ============================================================================
# RUNTIME
# ============================================================================

@router.get("/{instance_id}/view")
async def get_view(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> Dict[str, Any]:
    return _editor(registry, instance_id).runtime.current_view()


@router.post("/{instance_id}/actions", response_model=DispatchResponse)
async def dispatch_action(
    instance_id: str,
    body: DispatchRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> DispatchResponse:
    editor = _editor(registry, instance_id)
    result = await editor.runtime.dispatch(body.action, body.scope)
    return _dispatch_response(editor, result)


@router.post("/{instance_id}/components/{component_id}/trigger", response_model=DispatchResponse)
async def trigger_component(
    instance_id: str,
    component_id: str,
    body: TriggerRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> DispatchResponse:
    editor = _editor(registry, instance_id)
    try:
        result = await editor.runtime.trigger(component_id, body.record_id)
    except ComponentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _dispatch_response(editor, result)


@router.patch("/{instance_id}/form")
async def update_form(
    instance_id: str,
    body: FormUpdateRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    runtime = _editor(registry, instance_id).runtime
    runtime.set_fields(body.values)
    return {"values": runtime.form_state}


@router.post("/{instance_id}/popup/buttons/{index}", response_model=DispatchResponse)
async def press_popup_button(
    instance_id: str,
    index: int,
    registry: RuntimeRegistry = Depends(get_registry),
) -> DispatchResponse:
    editor = _editor(registry, instance_id)
    if editor.runtime.popup is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No popup is open")
    result = await editor.runtime.press_popup_button(index)
    return _dispatch_response(editor, result)


@router.delete("/{instance_id}/popup", status_code=status.HTTP_204_NO_CONTENT)
async def close_popup(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> None:
    _editor(registry, instance_id).runtime.close_popup()


@router.get("/{instance_id}/session", response_model=SessionResponse)
async def get_session(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> SessionResponse:
    session = _editor(registry, instance_id).runtime.session
    return SessionResponse(is_logged_in=session is not None, user=session.user if session else None)


# ============================================================================
# DATA
# ============================================================================

@router.get("/{instance_id}/tables")
async def get_tables(instance_id: str, registry: RuntimeRegistry = Depends(get_registry)) -> Dict[str, Any]:
    _editor(registry, instance_id)
    return registry.store.snapshot(instance_id)


@router.get("/{instance_id}/tables/{table}")
async def get_table(
    instance_id: str,
    table: str,
    registry: RuntimeRegistry = Depends(get_registry),
) -> List[Dict[str, Any]]:
    _editor(registry, instance_id)
    if not registry.store.has_table(instance_id, table):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Table not found: {table}")
    return registry.store.get_table(instance_id, table)


@router.put("/{instance_id}/tables/{table}")
async def set_table(
    instance_id: str,
    table: str,
    body: TableRequest,
    registry: RuntimeRegistry = Depends(get_registry),
) -> List[Dict[str, Any]]:
    _editor(registry, instance_id)
    try:
        registry.store.set_table(instance_id, table, body.records)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return registry.store.get_table(instance_id, table)
