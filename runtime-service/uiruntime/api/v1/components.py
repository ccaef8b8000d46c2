"""Component catalog and snippet library endpoints."""
from fastapi import APIRouter, HTTPException, status
from typing import Any, Dict, List

from uiruntime.models.component_catalog import export_component_catalog
from uiruntime.models.snippets import BUILTIN_SNIPPETS, get_snippet

router = APIRouter()


@router.get(
    "/components",
    tags=["Components"],
    summary="Get full component catalog",
    description="Component types the runtime interprets, with container/input/event flags."
)
async def get_component_catalog() -> Dict[str, Any]:
    return export_component_catalog()


@router.get(
    "/snippets",
    tags=["Components"],
    summary="List built-in snippets",
)
async def list_snippets() -> List[Dict[str, Any]]:
    return [dict(snippet) for snippet in BUILTIN_SNIPPETS]


@router.get(
    "/snippets/{key}",
    tags=["Components"],
    summary="Get one built-in snippet",
)
async def read_snippet(key: str) -> Dict[str, Any]:
    snippet = get_snippet(key)
    if snippet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Snippet not found: {key}")
    return dict(snippet)
