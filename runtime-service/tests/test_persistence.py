"""
App instance persistence tests: backends, partial saves, debounced saver.
"""

import asyncio
import json

import pytest

from uiruntime.services.persistence import (
    AppInstanceNotFoundError,
    AppInstancePersistence,
    DebouncedSaver,
    FileSystemBackend,
    MemoryBackend,
    PersistenceError,
    StateCorruptedError,
    create_persistence,
)


@pytest.fixture(params=["memory", "filesystem"])
def persistence(request, tmp_path) -> AppInstancePersistence:
    if request.param == "memory":
        return AppInstancePersistence(MemoryBackend())
    return AppInstancePersistence(FileSystemBackend(str(tmp_path)))


class RecordingPersistence:
    """Stands in for AppInstancePersistence and records save calls."""

    def __init__(self, failures: int = 0):
        self.saves = []
        self.failures = failures

    async def save_app_instance(self, instance_id, **parts):
        if self.failures:
            self.failures -= 1
            raise PersistenceError("disk full")
        self.saves.append((instance_id, parts))


# ============================================================================
# Backends
# ============================================================================


class TestAppInstancePersistence:

    async def test_missing_instance(self, persistence):
        with pytest.raises(AppInstanceNotFoundError):
            await persistence.load_app_instance("nope")
        assert not await persistence.exists("nope")

    async def test_save_and_load(self, persistence):
        await persistence.save_app_instance("a1", document_text="{}", data_store_snapshot={"tasks": [{"id": "1"}]})
        snapshot = await persistence.load_app_instance("a1")
        assert snapshot.document_text == "{}"
        assert snapshot.data_store_snapshot == {"tasks": [{"id": "1"}]}
        assert snapshot.updated_at is not None

    async def test_partial_saves_merge(self, persistence):
        await persistence.save_app_instance("a1", document_text="v1")
        await persistence.save_app_instance("a1", data_store_snapshot={"t": []})
        await persistence.save_app_instance("a1", document_text="v2")
        snapshot = await persistence.load_app_instance("a1")
        assert snapshot.document_text == "v2"
        assert snapshot.data_store_snapshot == {"t": []}

    async def test_list_and_delete(self, persistence):
        await persistence.save_app_instance("b", document_text="{}")
        await persistence.save_app_instance("a", document_text="{}")
        assert await persistence.list_app_instances() == ["a", "b"]
        await persistence.delete_app_instance("a")
        assert await persistence.list_app_instances() == ["b"]


class TestFileSystemBackend:

    async def test_recovers_from_backup(self, tmp_path):
        persistence = AppInstancePersistence(FileSystemBackend(str(tmp_path)))
        await persistence.save_app_instance("a1", document_text="first")
        await persistence.save_app_instance("a1", document_text="second")
        (tmp_path / "a1.json").write_text("{broken", encoding="utf-8")

        snapshot = await persistence.load_app_instance("a1")
        assert snapshot.document_text == "first"

    async def test_corrupted_without_backup(self, tmp_path):
        (tmp_path / "a1.json").write_text("{broken", encoding="utf-8")
        persistence = AppInstancePersistence(FileSystemBackend(str(tmp_path)))
        with pytest.raises(StateCorruptedError):
            await persistence.load_app_instance("a1")

    async def test_malformed_record(self, tmp_path):
        (tmp_path / "a1.json").write_text(json.dumps({"document_text": "{}"}), encoding="utf-8")
        persistence = AppInstancePersistence(FileSystemBackend(str(tmp_path)))
        with pytest.raises(StateCorruptedError):
            await persistence.load_app_instance("a1")

    async def test_rejects_path_like_ids(self, tmp_path):
        backend = FileSystemBackend(str(tmp_path))
        with pytest.raises(PersistenceError):
            await backend.write("../escape", {})

    def test_factory(self, tmp_path):
        assert isinstance(create_persistence("memory").backend, MemoryBackend)
        assert isinstance(create_persistence("filesystem", str(tmp_path)).backend, FileSystemBackend)


# ============================================================================
# Debounced saver
# ============================================================================


class TestDebouncedSaver:

    async def test_rapid_changes_coalesce(self):
        persistence = RecordingPersistence()
        saver = DebouncedSaver(persistence, delay=0.02)
        saver.schedule("a1", document_text="v1")
        saver.schedule("a1", data_store_snapshot={"t": []})
        saver.schedule("a1", document_text="v2")
        await asyncio.sleep(0.1)
        assert persistence.saves == [("a1", {"document_text": "v2", "data_store_snapshot": {"t": []}})]
        assert saver.pending_instances == []

    async def test_flush_saves_immediately(self):
        persistence = RecordingPersistence()
        saver = DebouncedSaver(persistence, delay=10)
        saver.schedule("a1", document_text="v1")
        saver.schedule("a2", document_text="w1")
        assert await saver.flush() is True
        assert sorted(i for i, _ in persistence.saves) == ["a1", "a2"]

    async def test_failed_save_is_retried_on_next_flush(self):
        persistence = RecordingPersistence(failures=1)
        saver = DebouncedSaver(persistence, delay=10)
        saver.schedule("a1", document_text="v1")
        assert await saver.flush("a1") is False
        assert saver.pending_instances == ["a1"]
        assert await saver.flush("a1") is True
        assert persistence.saves == [("a1", {"document_text": "v1"})]

    def test_schedule_without_loop_waits_for_flush(self):
        persistence = RecordingPersistence()
        saver = DebouncedSaver(persistence, delay=0)
        saver.schedule("a1", document_text="v1")
        assert saver.pending_instances == ["a1"]
        assert persistence.saves == []

    async def test_close_flushes(self):
        persistence = RecordingPersistence()
        saver = DebouncedSaver(persistence, delay=10)
        saver.schedule("a1", document_text="v1")
        await saver.close()
        assert persistence.saves == [("a1", {"document_text": "v1"})]
