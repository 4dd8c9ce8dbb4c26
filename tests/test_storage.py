"""Test key-value storage and the task repository"""

import json

import pytest

from conftest import make_song
from melodix.core.exceptions import StorageError
from melodix.core.storage import JsonFileStore, MemoryStore
from melodix.enhancement.models import EnhancementTask, TaskStatus
from melodix.enhancement.repository import DEFAULT_TASKS_KEY, TaskRepository
from melodix.library.models import SongPatch


class TestJsonFileStore:
    """Test the JSON file backend"""

    def test_put_and_get(self, temp_dir):
        store = JsonFileStore(temp_dir / "state" / "store.json")

        store.put("tasks", [{'id': 'a'}])
        store.put("extensions", {'x': 1})

        assert store.get("tasks") == [{'id': 'a'}]
        assert JsonFileStore(temp_dir / "state" / "store.json").get("extensions") == {'x': 1}

    def test_missing_key_returns_default(self, temp_dir):
        store = JsonFileStore(temp_dir / "store.json")
        assert store.get("nothing", []) == []

    def test_no_temp_files_left_behind(self, temp_dir):
        store = JsonFileStore(temp_dir / "store.json")
        store.put("a", 1)
        store.put("b", 2)

        assert [p.name for p in temp_dir.iterdir()] == ["store.json"]

    def test_corrupt_file_raises_on_read(self, temp_dir):
        path = temp_dir / "store.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            JsonFileStore(path).get("tasks")

    def test_corrupt_file_is_replaced_on_write(self, temp_dir):
        path = temp_dir / "store.json"
        path.write_text("[1, 2", encoding="utf-8")
        store = JsonFileStore(path)

        store.put("tasks", [])

        assert json.loads(path.read_text(encoding="utf-8")) == {'tasks': []}

    def test_delete(self, temp_dir):
        store = JsonFileStore(temp_dir / "store.json")
        store.put("a", 1)
        store.delete("a")
        store.delete("a")
        assert store.get("a") is None


class TestMemoryStore:
    def test_values_are_copied(self):
        store = MemoryStore()
        value = {'list': [1]}
        store.put("k", value)
        value['list'].append(2)

        loaded = store.get("k")
        loaded['list'].append(3)

        assert store.get("k") == {'list': [1]}


class TestTaskRepository:
    """Test typed task persistence"""

    def test_round_trip(self, store):
        task = EnhancementTask.for_song(make_song())
        task.status = TaskStatus.COMPLETED
        task.progress = 100
        task.result = SongPatch(genre="Lo-Fi", has_lyrics=True)
        repository = TaskRepository(store)

        assert repository.save([task]) is True
        loaded = repository.load()

        assert len(loaded) == 1
        assert loaded[0].id == task.id
        assert loaded[0].status == TaskStatus.COMPLETED
        assert loaded[0].result.genre == "Lo-Fi"
        assert loaded[0].song.title == "Midnight Rain"

    def test_processing_is_coerced_to_pending(self, store):
        task = EnhancementTask.for_song(make_song())
        task.status = TaskStatus.PROCESSING
        task.progress = 30
        store.put(DEFAULT_TASKS_KEY, [task.to_dict()])

        loaded = TaskRepository(store).load()[0]

        assert loaded.status == TaskStatus.PENDING
        assert loaded.progress == 0

    def test_malformed_records_are_skipped(self, store):
        good = EnhancementTask.for_song(make_song())
        store.put(DEFAULT_TASKS_KEY, [
            {'id': 'x'},
            {'id': 'y', 'song_id': 's', 'status': 'exploded'},
            good.to_dict(),
            "garbage",
        ])

        loaded = TaskRepository(store).load()

        assert [task.id for task in loaded] == [good.id]

    def test_unreadable_store_loads_empty(self, temp_dir):
        path = temp_dir / "store.json"
        path.write_text("corrupt", encoding="utf-8")

        assert TaskRepository(JsonFileStore(path)).load() == []

    def test_failed_save_returns_false(self):
        class BrokenStore(MemoryStore):
            def put(self, key, value):
                raise StorageError("read-only file system")

        assert TaskRepository(BrokenStore()).save([]) is False
