"""
App Instance Persistence Layer
==============================

Loads and saves one app instance: its document text and its data store
snapshot.

Supports multiple backends:
- In-memory (tests, ephemeral previews)
- File system (JSON files)

Design Principles:
- Atomic writes (all or nothing)
- Partial saves merge with what is already stored
- Saves from the runtime are debounced and fire-and-forget: a failed save
  is logged and retried with the next one, the in-memory state stays
  authoritative
"""

import asyncio
import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger


# ============================================================================
# EXCEPTIONS
# ============================================================================

class PersistenceError(Exception):
    """Base exception for persistence errors"""
    pass


class AppInstanceNotFoundError(PersistenceError):
    """Raised when no stored state exists for an app instance"""
    pass


class StateCorruptedError(PersistenceError):
    """Raised when stored state cannot be decoded"""
    pass


@dataclass
class AppInstanceSnapshot:
    instance_id: str
    document_text: Optional[str] = None
    data_store_snapshot: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "document_text": self.document_text,
            "data_store": self.data_store_snapshot,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppInstanceSnapshot":
        data_store = data.get("data_store") or {}
        if not isinstance(data_store, dict):
            raise StateCorruptedError("data_store must be an object")
        return cls(
            instance_id=data["instance_id"],
            document_text=data.get("document_text"),
            data_store_snapshot=data_store,
            updated_at=data.get("updated_at"),
        )


# ============================================================================
# STORAGE BACKEND INTERFACE
# ============================================================================

class StorageBackend(Protocol):
    """Interface that all storage backends must implement"""

    async def read(self, instance_id: str) -> Dict[str, Any]:
        """Read raw state data"""
        ...

    async def write(self, instance_id: str, state_data: Dict[str, Any]) -> None:
        """Write raw state data"""
        ...

    async def exists(self, instance_id: str) -> bool:
        ...

    async def delete(self, instance_id: str) -> None:
        ...

    async def list_instances(self) -> List[str]:
        ...


# ============================================================================
# MEMORY BACKEND
# ============================================================================

class MemoryBackend:
    """Dict-backed storage; contents vanish with the process."""

    def __init__(self):
        self._items: Dict[str, Dict[str, Any]] = {}

    async def read(self, instance_id: str) -> Dict[str, Any]:
        if instance_id not in self._items:
            raise AppInstanceNotFoundError(f"App instance not found: {instance_id}")
        return copy.deepcopy(self._items[instance_id])

    async def write(self, instance_id: str, state_data: Dict[str, Any]) -> None:
        self._items[instance_id] = copy.deepcopy(state_data)

    async def exists(self, instance_id: str) -> bool:
        return instance_id in self._items

    async def delete(self, instance_id: str) -> None:
        self._items.pop(instance_id, None)

    async def list_instances(self) -> List[str]:
        return sorted(self._items)


# ============================================================================
# FILE SYSTEM BACKEND
# ============================================================================

class FileSystemBackend:
    """
    File-based storage backend using JSON files.

    Structure:
        storage_path/
            {instance_id}.json
            {instance_id}.json.backup
    """

    def __init__(self, storage_path: str = "./app_instances"):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileSystemBackend initialized: {self.storage_path}")

    def _get_file_path(self, instance_id: str) -> Path:
        if not instance_id or "/" in instance_id or "\\" in instance_id or instance_id.startswith("."):
            raise PersistenceError(f"Invalid app instance id: {instance_id!r}")
        return self.storage_path / f"{instance_id}.json"

    def _get_backup_path(self, instance_id: str) -> Path:
        return self.storage_path / f"{instance_id}.json.backup"

    async def read(self, instance_id: str) -> Dict[str, Any]:
        """Read state from file, falling back to the backup if corrupted"""
        file_path = self._get_file_path(instance_id)

        if not file_path.exists():
            raise AppInstanceNotFoundError(f"App instance not found: {instance_id}")

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            logger.debug(f"Loaded app instance from file: {instance_id}")
            return data
        except json.JSONDecodeError:
            logger.error(f"State file corrupted: {instance_id}, attempting backup recovery")
            return self._read_backup(instance_id)
        except OSError as e:
            raise PersistenceError(f"Failed to read state: {e}") from e

    def _read_backup(self, instance_id: str) -> Dict[str, Any]:
        backup_path = self._get_backup_path(instance_id)

        if not backup_path.exists():
            raise StateCorruptedError(
                f"State file corrupted and no backup available: {instance_id}"
            )

        try:
            with open(backup_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateCorruptedError(
                f"Both state file and backup are corrupted: {instance_id}"
            ) from e

        logger.warning(f"Recovered state from backup: {instance_id}")
        return data

    async def write(self, instance_id: str, state_data: Dict[str, Any]) -> None:
        """Write state to file (atomic)"""
        file_path = self._get_file_path(instance_id)
        backup_path = self._get_backup_path(instance_id)
        temp_path = self.storage_path / f"{instance_id}.json.tmp"

        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(state_data, f, indent=2, default=str, ensure_ascii=False)

            if file_path.exists():
                file_path.replace(backup_path)

            temp_path.replace(file_path)
            logger.debug(f"Saved app instance to file: {instance_id}")

        except (OSError, TypeError, ValueError) as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PersistenceError(f"Failed to write state: {e}") from e

    async def exists(self, instance_id: str) -> bool:
        return self._get_file_path(instance_id).exists()

    async def delete(self, instance_id: str) -> None:
        file_path = self._get_file_path(instance_id)
        backup_path = self._get_backup_path(instance_id)

        if file_path.exists():
            file_path.unlink()
        if backup_path.exists():
            backup_path.unlink()

        logger.info(f"Deleted app instance: {instance_id}")

    async def list_instances(self) -> List[str]:
        return sorted(p.name[: -len(".json")] for p in self.storage_path.glob("*.json"))


# ============================================================================
# PERSISTENCE MANAGER
# ============================================================================

class AppInstancePersistence:
    """
    Public API for app instance storage.

    load_app_instance(id) -> snapshot
    save_app_instance(id, document_text=?, data_store_snapshot=?)
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    async def load_app_instance(self, instance_id: str) -> AppInstanceSnapshot:
        """
        Raises:
            AppInstanceNotFoundError: nothing stored for this id
            StateCorruptedError: stored data is unreadable
        """
        data = await self.backend.read(instance_id)
        try:
            return AppInstanceSnapshot.from_dict(data)
        except (KeyError, TypeError) as e:
            raise StateCorruptedError(f"Malformed app instance record: {instance_id}") from e

    async def save_app_instance(
        self,
        instance_id: str,
        document_text: Optional[str] = None,
        data_store_snapshot: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ) -> AppInstanceSnapshot:
        """Store the given parts; parts left as None keep their stored value."""
        if await self.backend.exists(instance_id):
            current = await self.load_app_instance(instance_id)
        else:
            current = AppInstanceSnapshot(instance_id=instance_id)

        if document_text is not None:
            current.document_text = document_text
        if data_store_snapshot is not None:
            current.data_store_snapshot = copy.deepcopy(data_store_snapshot)
        current.updated_at = datetime.now(timezone.utc).isoformat()

        await self.backend.write(instance_id, current.to_dict())
        logger.info(f"💾 App instance saved: {instance_id}")
        return current

    async def exists(self, instance_id: str) -> bool:
        return await self.backend.exists(instance_id)

    async def delete_app_instance(self, instance_id: str) -> None:
        await self.backend.delete(instance_id)

    async def list_app_instances(self) -> List[str]:
        return await self.backend.list_instances()


def create_persistence(backend: str = "memory", storage_path: str = "./app_instances") -> AppInstancePersistence:
    """Factory for the configured backend."""
    if backend == "filesystem":
        return AppInstancePersistence(FileSystemBackend(storage_path))
    return AppInstancePersistence(MemoryBackend())


# ============================================================================
# DEBOUNCED SAVER
# ============================================================================

class DebouncedSaver:
    """
    Coalesces rapid save requests per app instance.

    schedule() merges the new parts into the pending payload and restarts
    the delay. Without a running event loop, payloads wait for flush().
    """

    def __init__(self, persistence: AppInstancePersistence, delay: float = 1.0):
        self.persistence = persistence
        self.delay = delay
        self._pending: Dict[str, Dict[str, Any]] = {}
        self._timers: Dict[str, asyncio.Task] = {}

    @property
    def pending_instances(self) -> List[str]:
        return list(self._pending)

    def schedule(
        self,
        instance_id: str,
        document_text: Optional[str] = None,
        data_store_snapshot: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = self._pending.setdefault(instance_id, {})
        if document_text is not None:
            payload["document_text"] = document_text
        if data_store_snapshot is not None:
            payload["data_store_snapshot"] = data_store_snapshot

        timer = self._timers.pop(instance_id, None)
        if timer is not None:
            timer.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[instance_id] = loop.create_task(self._run(instance_id))

    async def _run(self, instance_id: str) -> None:
        await asyncio.sleep(self.delay)
        # past the delay this task can no longer be cancelled by schedule()
        if self._timers.get(instance_id) is asyncio.current_task():
            del self._timers[instance_id]
        await self._save(instance_id)

    async def _save(self, instance_id: str) -> bool:
        payload = self._pending.pop(instance_id, None)
        if not payload:
            return True
        try:
            await self.persistence.save_app_instance(instance_id, **payload)
            return True
        except Exception as e:
            logger.bind(instance_id=instance_id).error(f"persistence.save.failed: {e}")
            # keep the parts for the next attempt unless newer ones arrived
            pending = self._pending.setdefault(instance_id, {})
            for key, value in payload.items():
                pending.setdefault(key, value)
            return False

    async def flush(self, instance_id: Optional[str] = None) -> bool:
        """Save pending payloads now. Returns False if any save failed."""
        targets = [instance_id] if instance_id is not None else list(self._pending)
        ok = True
        for target in targets:
            timer = self._timers.pop(target, None)
            if timer is not None:
                timer.cancel()
            ok = await self._save(target) and ok
        return ok

    async def close(self) -> None:
        await self.flush()
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
