"""
Test suite for storage backends

Tests the in-memory and SQLite document stores, transactions and
optimistic version checks.
"""

import pytest

from cash_position.storage import InMemoryStorage, SQLiteStorage, VERSION_FIELD, create_storage
from cash_position.exceptions import ConcurrentModification


class StorageContract:
    """Behaviour every backend must share"""

    def make_storage(self, tmp_path):
        raise NotImplementedError

    @pytest.fixture
    def storage(self, tmp_path):
        storage = self.make_storage(tmp_path)
        yield storage
        storage.close()

    def test_save_and_load(self, storage):
        version = storage.save("receivables", "R1", {"id": "R1", "amount": "10.00"})

        record = storage.load("receivables", "R1")
        assert version == 1
        assert record["amount"] == "10.00"
        assert record[VERSION_FIELD] == 1
        assert storage.exists("receivables", "R1")
        assert storage.load("receivables", "missing") is None

    def test_version_increments(self, storage):
        storage.save("receivables", "R1", {"id": "R1"})
        assert storage.save("receivables", "R1", {"id": "R1"}) == 2

    def test_expected_version_conflict(self, storage):
        """Test that a stale write is rejected"""
        storage.save("receivables", "R1", {"id": "R1"})
        storage.save("receivables", "R1", {"id": "R1"}, expected_version=1)

        with pytest.raises(ConcurrentModification) as exc_info:
            storage.save("receivables", "R1", {"id": "R1"}, expected_version=1)
        assert exc_info.value.actual == 2

    def test_new_record_expects_version_zero(self, storage):
        assert storage.save("payables", "P1", {"id": "P1"}, expected_version=0) == 1
        with pytest.raises(ConcurrentModification):
            storage.save("payables", "P1", {"id": "P1"}, expected_version=0)

    def test_find_with_list_filter(self, storage):
        storage.save("bank_accounts", "A1", {"id": "A1", "bank": "x"})
        storage.save("bank_accounts", "A2", {"id": "A2", "bank": "y"})
        storage.save("bank_accounts", "A3", {"id": "A3", "bank": "x"})

        assert {r["id"] for r in storage.find("bank_accounts", {"bank": "x"})} == {"A1", "A3"}
        assert {r["id"] for r in storage.find("bank_accounts", {"id": ["A1", "A2"]})} == {"A1", "A2"}

    def test_delete_count_and_clear(self, storage):
        storage.save("payables", "P1", {"id": "P1"})
        storage.save("payables", "P2", {"id": "P2"})

        assert storage.delete("payables", "P1")
        assert not storage.delete("payables", "P1")
        assert storage.count("payables") == 1
        storage.clear_table("payables")
        assert storage.load_all("payables") == []

    def test_atomic_rollback(self, storage):
        """Test that a failing block leaves no partial writes"""
        storage.save("payables", "P1", {"id": "P1", "amount": "1.00"})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("payables", "P1", {"id": "P1", "amount": "2.00"})
                storage.save("payables", "P2", {"id": "P2"})
                raise RuntimeError("boom")

        assert storage.load("payables", "P1")["amount"] == "1.00"
        assert storage.load("payables", "P2") is None

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("payables", "P1", {"id": "P1"})
        assert storage.exists("payables", "P1")


class TestInMemoryStorage(StorageContract):
    """Test in-memory backend"""

    def make_storage(self, tmp_path):
        return InMemoryStorage()

    def test_loaded_records_are_detached(self):
        storage = InMemoryStorage()
        data = {"id": "R1", "tags": ["a"]}
        storage.save("receivables", "R1", data)
        data["tags"].append("b")

        loaded = storage.load("receivables", "R1")
        loaded["tags"].append("c")
        assert storage.load("receivables", "R1")["tags"] == ["a"]


class TestSQLiteStorage(StorageContract):
    """Test SQLite backend"""

    def make_storage(self, tmp_path):
        return SQLiteStorage(tmp_path / "ledger.db")

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "ledger.db"
        storage = SQLiteStorage(path)
        storage.save("receivables", "R1", {"id": "R1", "amount": "5.00"})
        storage.close()

        reopened = SQLiteStorage(path)
        assert reopened.load("receivables", "R1")["amount"] == "5.00"
        reopened.close()

    def test_rejects_bad_table_name(self, tmp_path):
        storage = SQLiteStorage(tmp_path / "ledger.db")
        with pytest.raises(ValueError):
            storage.save("bad table; drop", "x", {})
        storage.close()


class TestCreateStorage:
    """Test backend selection from a database URL"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self, tmp_path):
        storage = create_storage(f"sqlite:///{tmp_path / 'ledger.db'}")
        assert isinstance(storage, SQLiteStorage)
        storage.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            SQLiteStorage.from_url("postgresql://localhost/db")
