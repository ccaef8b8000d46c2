"""
In-Memory Data Store
====================

Table store emulating an app's database during preview:
    app instance id -> table name -> ordered list of records

Design Principles:
- Reads never fail: a missing app scope or table reads as []
- Writes are scoped: a mutation replaces exactly one table list of one app
  scope, leaving every other table and app untouched
- Callers receive copies, so outside edits cannot leak into stored records
- Every record carries a unique string `id`
- Change listeners act as the persistence hook
"""

import copy
from typing import Any, Callable, Dict, Iterable, List, Optional

from uiruntime.utils.ids import MonotonicIdGenerator
from uiruntime.utils.logging import get_logger

logger = get_logger(__name__)

Record = Dict[str, Any]
AppData = Dict[str, List[Record]]
ChangeListener = Callable[[str], None]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DataStoreError(Exception):
    """Base exception for data store errors"""
    pass


class DuplicateRecordError(DataStoreError):
    """Raised when inserting a record whose id already exists in the table"""
    pass


class InvalidRecordError(DataStoreError):
    """Raised when a record is not a mapping"""
    pass


def _record_id(value: Any) -> str:
    return "" if value is None else str(value)


# ============================================================================
# DATA STORE
# ============================================================================

class DataStore:
    """
    Per-app-instance table store.

    Usage:
        store = DataStore()
        store.insert("app-1", "tasks", {"title": "Buy milk"})
        store.get_table("app-1", "tasks")
    """

    def __init__(self, id_generator: Optional[MonotonicIdGenerator] = None):
        self._apps: Dict[str, AppData] = {}
        self._ids = id_generator or MonotonicIdGenerator()
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a callback run with the app id after every mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, app_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(app_id)
            except Exception as e:
                logger.error(
                    "datastore.listener.failed",
                    extra={"app_id": app_id},
                    exc_info=e
                )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _replace_table(self, app_id: str, table: str, records: List[Record]) -> None:
        scope = self._apps.get(app_id)
        new_scope = dict(scope) if scope else {}
        new_scope[table] = records
        self._apps[app_id] = new_scope

    def _peek(self, app_id: str, table: str) -> List[Record]:
        return self._apps.get(app_id, {}).get(table, [])

    def new_id(self, app_id: str, table: str) -> str:
        """Generate an id not present in the given table."""
        return self._unused_id({_record_id(r.get("id")) for r in self._peek(app_id, table)})

    def _unused_id(self, taken: set) -> str:
        candidate = self._ids.next_id()
        while candidate in taken:
            candidate = self._ids.next_id()
        return candidate

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_table(self, app_id: str, table: str) -> List[Record]:
        """Records of a table (copy), [] when the app or table is missing."""
        return copy.deepcopy(self._peek(app_id, table))

    def has_table(self, app_id: str, table: str) -> bool:
        return table in self._apps.get(app_id, {})

    def table_names(self, app_id: str) -> List[str]:
        return list(self._apps.get(app_id, {}).keys())

    def get_record(self, app_id: str, table: str, record_id: Any) -> Optional[Record]:
        wanted = _record_id(record_id)
        for record in self._peek(app_id, table):
            if _record_id(record.get("id")) == wanted:
                return copy.deepcopy(record)
        return None

    def find(self, app_id: str, table: str, **match: Any) -> List[Record]:
        """Records whose fields equal every given value (exact comparison)."""
        return [
            copy.deepcopy(record)
            for record in self._peek(app_id, table)
            if all(key in record and record[key] == value for key, value in match.items())
        ]

    def find_one(self, app_id: str, table: str, **match: Any) -> Optional[Record]:
        found = self.find(app_id, table, **match)
        return found[0] if found else None

    def get_app_data(self, app_id: str) -> AppData:
        return copy.deepcopy(self._apps.get(app_id, {}))

    snapshot = get_app_data

    def apps(self) -> List[str]:
        return list(self._apps.keys())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_table(self, app_id: str, table: str, records: Iterable[Record]) -> None:
        """
        Replace a table's records.

        Records without an id get a generated one; ids are stored as strings.

        Raises:
            InvalidRecordError: a record is not a dict
            DuplicateRecordError: two records share an id
        """
        new_records = []
        taken = set()
        for record in records:
            if not isinstance(record, dict):
                raise InvalidRecordError(f"Records must be objects, got {type(record).__name__}")
            new_record = copy.deepcopy(record)
            if new_record.get("id") not in (None, ""):
                new_record["id"] = _record_id(new_record["id"])
                if new_record["id"] in taken:
                    raise DuplicateRecordError(
                        f"Record '{new_record['id']}' appears more than once for table '{table}'"
                    )
                taken.add(new_record["id"])
            new_records.append(new_record)

        for new_record in new_records:
            if new_record.get("id") in (None, ""):
                new_record["id"] = self._unused_id(taken)
                taken.add(new_record["id"])

        self._replace_table(app_id, table, new_records)
        logger.debug("datastore.table.replaced", extra={"app_id": app_id, "table": table, "count": len(new_records)})
        self._notify(app_id)

    def insert(self, app_id: str, table: str, record: Record) -> Record:
        """
        Append a record, creating the app scope and table when absent.

        A record without an id gets a generated one.

        Returns:
            The stored record (copy)

        Raises:
            InvalidRecordError: record is not a dict
            DuplicateRecordError: the id is already used in this table
        """
        if not isinstance(record, dict):
            raise InvalidRecordError(f"Records must be objects, got {type(record).__name__}")

        new_record = copy.deepcopy(record)
        if new_record.get("id") in (None, ""):
            new_record["id"] = self.new_id(app_id, table)
        else:
            new_record["id"] = _record_id(new_record["id"])
            existing = self._peek(app_id, table)
            if any(_record_id(r.get("id")) == new_record["id"] for r in existing):
                raise DuplicateRecordError(
                    f"Record '{new_record['id']}' already exists in table '{table}'"
                )

        self._replace_table(app_id, table, [*self._peek(app_id, table), new_record])

        logger.debug(
            "datastore.record.inserted",
            extra={"app_id": app_id, "table": table, "record_id": new_record["id"]}
        )
        self._notify(app_id)
        return copy.deepcopy(new_record)

    def delete_by_id(self, app_id: str, table: str, record_id: Any) -> bool:
        """
        Remove the first record with the given id.

        Idempotent: a missing app, table or record is a no-op.

        Returns:
            True if a record was removed
        """
        records = self._peek(app_id, table)
        wanted = _record_id(record_id)
        for index, record in enumerate(records):
            if _record_id(record.get("id")) == wanted:
                self._replace_table(app_id, table, records[:index] + records[index + 1:])
                logger.debug(
                    "datastore.record.deleted",
                    extra={"app_id": app_id, "table": table, "record_id": wanted}
                )
                self._notify(app_id)
                return True
        return False

    def update(self, app_id: str, table: str, record_id: Any, changes: Dict[str, Any]) -> Optional[Record]:
        """Merge changes into a record. The id itself cannot change."""
        records = self._peek(app_id, table)
        wanted = _record_id(record_id)
        for index, record in enumerate(records):
            if _record_id(record.get("id")) == wanted:
                updated = {**copy.deepcopy(record), **copy.deepcopy(changes), "id": record["id"]}
                self._replace_table(app_id, table, records[:index] + [updated] + records[index + 1:])
                self._notify(app_id)
                return copy.deepcopy(updated)
        return None

    def ensure_tables(self, app_id: str, tables: Iterable[str]) -> List[str]:
        """Create missing tables as empty lists. Returns the names created."""
        created = [t for t in tables if not self.has_table(app_id, t)]
        if not created:
            return []
        scope = dict(self._apps.get(app_id, {}))
        for table in created:
            scope[table] = []
        self._apps[app_id] = scope
        logger.debug("datastore.tables.created", extra={"app_id": app_id, "tables": created})
        self._notify(app_id)
        return created

    def set_app_data(self, app_id: str, data: AppData, notify: bool = True) -> None:
        """Replace a whole app scope (e.g. after loading from persistence)."""
        scope: AppData = {}
        for table, records in (data or {}).items():
            if not isinstance(records, list):
                raise InvalidRecordError(f"Table '{table}' must be a list of records")
            scope[table] = [copy.deepcopy(r) for r in records if isinstance(r, dict)]
        self._apps[app_id] = scope
        if notify:
            self._notify(app_id)

    def drop_app(self, app_id: str) -> None:
        self._apps.pop(app_id, None)
