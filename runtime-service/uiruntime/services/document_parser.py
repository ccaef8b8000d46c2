"""
Document Parser
===============

Turns raw app-definition text into a validated AppDefinition.

Design Principles:
- Never raises: every failure comes back as a ParseResult with an error
- No partial documents: either the whole text validates or nothing is
  returned
- Parsed results are memoized by text hash in an injected CacheManager
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError

from uiruntime.core.cache import CacheManager
from uiruntime.models.app_definition import AppDefinition
from uiruntime.utils.logging import get_logger

logger = get_logger(__name__)

CACHE_PREFIX = "document:"


@dataclass(frozen=True)
class ParseResult:
    document: Optional[AppDefinition] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.document is not None


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors()[:5]:
        location = ".".join(str(p) for p in err["loc"]) or "document"
        parts.append(f"{location}: {err['msg']}")
    more = e.error_count() - len(parts)
    if more > 0:
        parts.append(f"... and {more} more")
    return "; ".join(parts)


def document_cache_key(text: str) -> str:
    return CACHE_PREFIX + hashlib.sha256(text.encode("utf-8", "surrogatepass")).hexdigest()


def parse_document(text: str, cache: Optional[CacheManager] = None) -> ParseResult:
    """
    Parse and validate app-definition JSON.

    Args:
        text: UTF-8 JSON text of the document
        cache: optional cache for successful parses

    Returns:
        ParseResult with document and raw data, or with an error message
    """
    if not isinstance(text, str):
        return ParseResult(error="Invalid JSON: document text must be a string")

    key = document_cache_key(text) if cache is not None else None
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    try:
        data = json.loads(text)
    except RecursionError:
        logger.warning("document.parse.failed", extra={"reason": "too_deep"})
        return ParseResult(error="Invalid JSON: document is nested too deeply")
    except json.JSONDecodeError as e:
        logger.warning(
            "document.parse.failed",
            extra={"reason": "invalid_json", "line": e.lineno, "column": e.colno}
        )
        return ParseResult(error=f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})")

    if not isinstance(data, dict):
        logger.warning("document.parse.failed", extra={"reason": "not_an_object"})
        return ParseResult(error="Invalid app definition: top level must be a JSON object")

    try:
        document = AppDefinition.model_validate(data)
    except RecursionError:
        logger.warning("document.parse.failed", extra={"reason": "too_deep"})
        return ParseResult(error="Invalid app definition: document is nested too deeply")
    except UnicodeError:
        logger.warning("document.parse.failed", extra={"reason": "invalid_unicode"})
        return ParseResult(error="Invalid app definition: text contains invalid unicode")
    except ValidationError as e:
        message = _format_validation_error(e)
        logger.warning(
            "document.parse.failed",
            extra={"reason": "schema", "errors": e.error_count()}
        )
        return ParseResult(error=f"Invalid app definition: {message}")

    result = ParseResult(document=document, data=data)

    if cache is not None:
        cache.set(key, result)

    logger.debug(
        "document.parse.completed",
        extra={"screens": len(document.screens), "initial_screen": document.initial_screen}
    )
    return result
