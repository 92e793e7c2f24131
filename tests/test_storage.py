"""
Tests for storage backends and transaction support
"""

import pytest
import threading

from brokerage_core.storage import InMemoryStorage, SQLiteStorage


test_data = {
    "id": 1,
    "name": "Test Record",
    "amount": "100.50",
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "ledger.db")
    yield backend
    backend.close()


class TestStorageBackends:
    """Test basic CRUD operations on every backend"""

    def test_basic_operations(self, storage):
        storage.save("test_table", "1", test_data)
        assert storage.load("test_table", "1") == test_data

        assert storage.exists("test_table", "1")
        assert not storage.exists("test_table", "2")

        storage.save("test_table", "2", {"id": 2, "name": "Other"})
        assert len(storage.load_all("test_table")) == 2

        results = storage.find("test_table", {"name": "Test Record"})
        assert len(results) == 1
        assert results[0]["id"] == 1

        assert storage.count("test_table") == 2

        assert storage.delete("test_table", "1")
        assert not storage.exists("test_table", "1")
        assert not storage.delete("test_table", "1")

    def test_clear_table(self, storage):
        storage.save("test_table", "1", test_data)
        storage.clear_table("test_table")
        assert storage.count("test_table") == 0

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("test_table", "1", test_data)
            storage.save("test_table", "2", {"id": 2})
        assert storage.count("test_table") == 2

    def test_atomic_rollback(self, storage):
        storage.save("test_table", "1", {"id": 1, "value": "before"})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "1", {"id": 1, "value": "after"})
                storage.save("test_table", "2", {"id": 2})
                raise RuntimeError("boom")

        assert storage.load("test_table", "1")["value"] == "before"
        assert not storage.exists("test_table", "2")

    def test_reads_inside_transaction_see_own_writes(self, storage):
        with storage.atomic():
            storage.save("test_table", "1", test_data)
            assert storage.load("test_table", "1") == test_data
            assert storage.count("test_table") == 1

    def test_snapshot(self, storage):
        storage.save("a", "1", {"id": 1})
        storage.save("b", "1", {"id": 1})
        storage.save("b", "2", {"id": 2})

        snapshot = storage.snapshot(["a", "b", "empty"])
        assert len(snapshot["a"]) == 1
        assert len(snapshot["b"]) == 2
        assert snapshot["empty"] == []


class TestTransactionIsolation:
    """Uncommitted writes are never observed by other threads"""

    def test_uncommitted_writes_not_visible_to_other_threads(self, storage):
        staged = threading.Event()
        release = threading.Event()
        seen = {}

        def writer():
            with storage.atomic():
                storage.save("t", "1", {"id": 1})
                storage.save("t", "2", {"id": 2})
                staged.set()
                release.wait(timeout=5)

        def reader():
            seen["during"] = storage.snapshot(["t"])["t"]

        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        assert staged.wait(timeout=5)

        # The reader either sees the committed state before the transaction
        # or blocks until commit; it never sees half of it
        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        reader_thread.join(timeout=0.2)
        release.set()
        writer_thread.join()
        reader_thread.join()

        assert len(seen["during"]) in (0, 2)
        assert len(storage.snapshot(["t"])["t"]) == 2

    def test_rolled_back_writes_never_visible(self, storage):
        storage.save("t", "1", {"id": 1, "value": "before"})
        staged = threading.Event()
        release = threading.Event()
        seen = {}

        def writer():
            try:
                with storage.atomic():
                    storage.save("t", "1", {"id": 1, "value": "after"})
                    staged.set()
                    release.wait(timeout=5)
                    raise RuntimeError("abort")
            except RuntimeError:
                pass

        def reader():
            seen["value"] = storage.load("t", "1")["value"]

        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        assert staged.wait(timeout=5)
        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        reader_thread.join(timeout=0.2)
        release.set()
        writer_thread.join()
        reader_thread.join()

        assert seen["value"] == "before"
        assert storage.load("t", "1")["value"] == "before"


class TestInMemoryStorage:
    """Behaviour specific to the in-memory backend"""

    def test_loaded_records_are_copies(self):
        storage = InMemoryStorage()
        storage.save("t", "1", {"id": 1, "items": [1]})
        loaded = storage.load("t", "1")
        loaded["items"].append(2)
        assert storage.load("t", "1")["items"] == [1]

    def test_delete_inside_transaction(self):
        storage = InMemoryStorage()
        storage.save("t", "1", {"id": 1})
        with storage.atomic():
            assert storage.delete("t", "1")
            assert not storage.exists("t", "1")
        assert storage.count("t") == 0
