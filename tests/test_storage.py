"""
Tests for FileStore and MemoryStore
"""

import json

import pytest

from hostkeeper.storage import FileStore, KeyValueStore, MemoryStore


class TestFileStore:

    def test_put_get_delete(self, tmp_path):
        store = FileStore(str(tmp_path / "data"))

        assert store.get("domain_data") is None
        store.put("domain_data", {"lastUpdated": "2024-01-15T08:00:00.000Z"})

        assert store.get("domain_data") == {"lastUpdated": "2024-01-15T08:00:00.000Z"}
        assert json.loads((tmp_path / "data" / "domain_data.json").read_text(encoding="utf-8"))

        store.delete("domain_data")
        assert store.get("domain_data") is None

    def test_put_leaves_no_temp_files(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.put("custom_domains", [{"domain": "example.com"}])
        store.put("custom_domains", [])

        assert sorted(p.name for p in tmp_path.iterdir()) == ["custom_domains.json"]
        assert store.get("custom_domains") == []

    def test_delete_missing_key_is_noop(self, tmp_path):
        FileStore(str(tmp_path)).delete("nothing")

    def test_unserializable_value_keeps_previous_document(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.put("domain_data", {"ok": True})

        with pytest.raises(TypeError):
            store.put("domain_data", {"bad": object()})

        assert store.get("domain_data") == {"ok": True}
        assert sorted(p.name for p in tmp_path.iterdir()) == ["domain_data.json"]

    def test_corrupt_file_raises(self, tmp_path):
        (tmp_path / "domain_data.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError):
            FileStore(str(tmp_path)).get("domain_data")


class TestMemoryStore:

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {"items": [1, 2]}
        store.put("k", value)

        value["items"].append(3)
        fetched = store.get("k")
        fetched["items"].append(4)

        assert store.get("k") == {"items": [1, 2]}

    def test_initial_and_contains(self):
        store = MemoryStore({"k": 1})

        assert "k" in store
        store.delete("k")
        assert "k" not in store
        assert store.get("k") is None


def test_base_store_is_abstract():
    with pytest.raises(NotImplementedError):
        KeyValueStore().get("k")
