"""
Document editor: undoable document text driving a runtime.

Every committed text goes into History, including text that does not
parse; the runtime keeps showing the last good document in that case.
"""
import copy
import json
from typing import Any, Callable, Dict, Optional

from uiruntime.services.document_parser import ParseResult, parse_document
from uiruntime.services.history import History
from uiruntime.services.runtime import AppRuntime
from uiruntime.services.snippets import SnippetInsertion, insert_snippet
from uiruntime.utils.logging import get_logger

logger = get_logger(__name__)


class DocumentEditError(Exception):
    """Raised when an edit needs a valid document and the current text is not one"""
    pass


class DocumentEditor:

    def __init__(
        self,
        runtime: AppRuntime,
        initial_text: str = "",
        history_limit: Optional[int] = None,
        on_commit: Optional[Callable[[str], None]] = None,
    ):
        self.runtime = runtime
        self.history: History[str] = History(initial_text, limit=history_limit)
        self._on_commit = on_commit
        if initial_text:
            runtime.load_document(initial_text)

    @property
    def text(self) -> str:
        return self.history.present

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def _load(self) -> ParseResult:
        text = self.history.present
        result = self.runtime.load_document(text)
        if self._on_commit is not None:
            self._on_commit(text)
        return result

    def set_text(self, text: str) -> ParseResult:
        """Commit new text. Unchanged text is not a new undo step."""
        if not self.history.set_state(text):
            return parse_document(text, self.runtime.cache)
        return self._load()

    def undo(self) -> Optional[ParseResult]:
        if not self.history.undo():
            return None
        return self._load()

    def redo(self) -> Optional[ParseResult]:
        if not self.history.redo():
            return None
        return self._load()

    def _current_data(self) -> Optional[Dict[str, Any]]:
        return parse_document(self.text, self.runtime.cache).data

    def insert_snippet(self, snippet_json: str, target_screen_id: Optional[str] = None) -> SnippetInsertion:
        """
        Insert into target_screen_id, else the current screen, else initialScreen.

        Raises:
            SnippetInsertError: see services.snippets.insert_snippet
        """
        target = target_screen_id or self.runtime.current_screen_id
        insertion = insert_snippet(self._current_data(), target, snippet_json)
        self.set_text(insertion.text)
        return insertion

    def update_database_schema(self, schema: Dict[str, Any]) -> ParseResult:
        """Replace app.databaseSchema and commit."""
        data = self._current_data()
        if data is None:
            raise DocumentEditError("The current app document is invalid")
        if not isinstance(schema, dict):
            raise DocumentEditError("databaseSchema must be an object")

        new_data = copy.deepcopy(data)
        app = new_data.get("app")
        if not isinstance(app, dict):
            app = {}
            new_data["app"] = app
        app["databaseSchema"] = copy.deepcopy(schema)
        logger.info("editor.schema.updated", extra={"tables": list(schema)})
        return self.set_text(json.dumps(new_data, indent=2, ensure_ascii=False))

