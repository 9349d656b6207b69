import os
from datetime import timedelta

import pytest

from models import SchoolClass, Student
from storage import JsonDirectoryStore, KeyValueStore, MemoryStore, Storage, StorageError
from conftest import START, make_entry


class FailingStore(MemoryStore):
    def set_many(self, values):
        raise OSError("disk full")


def test_json_store_round_trip(tmp_path, categories):
    storage = Storage(JsonDirectoryStore(str(tmp_path)))
    student = Student(id="stu_1", name="Ada", class_id="cls_1", created_at=START)
    entry = make_entry("stu_1", "1", START + timedelta(hours=1), notes="kind")
    school_class = SchoolClass(id="cls_1", name="Math 101", students=[student], created_at=START)

    storage.save_students([student])
    storage.save_categories(categories)
    storage.save_entries([entry])
    storage.save_classes([school_class])

    reloaded = Storage(JsonDirectoryStore(str(tmp_path)))
    assert reloaded.load_students() == [student]
    assert reloaded.load_categories() == categories
    assert reloaded.load_entries() == [entry]
    assert reloaded.load_classes() == [school_class]
    assert sorted(os.listdir(tmp_path)) == ["behavior_entries.json", "behaviors.json",
                                            "classes.json", "students.json"]


def test_empty_store_loads_defaults():
    storage = Storage(MemoryStore())
    assert storage.load_students() == []
    assert storage.load_entries() == []
    assert storage.load_classes() == []
    categories = storage.load_categories()
    assert len(categories) == 8
    assert not any(c.is_custom for c in categories)


def test_corrupt_data_degrades_to_empty(caplog):
    store = MemoryStore({"students": "not json", "behaviors": '[{"id": "x"}]'})
    storage = Storage(store)
    assert storage.load_students() == []
    assert len(storage.load_categories()) == 8
    assert "Error loading students" in caplog.text


def test_save_collections_writes_together():
    store = MemoryStore()
    storage = Storage(store)
    storage.save_collections(students=[], entries=[])
    assert set(store.data) == {"students", "behavior_entries"}


def test_save_failure_raises_storage_error():
    storage = Storage(FailingStore())
    with pytest.raises(StorageError):
        storage.save_students([])


def test_json_store_leaves_no_temp_files(tmp_path):
    store = JsonDirectoryStore(str(tmp_path))
    store.set_many({"a": "[]", "b": "[1]"})
    assert sorted(os.listdir(tmp_path)) == ["a.json", "b.json"]
    assert store.get("b") == "[1]"
    assert store.get("missing") is None


def test_undecodable_file_degrades_to_empty(tmp_path, caplog):
    (tmp_path / "students.json").write_bytes(b'[{"name": "\xff\xfe"}]')
    storage = Storage(JsonDirectoryStore(str(tmp_path)))
    assert storage.load_students() == []
    assert "Error loading students" in caplog.text


def test_stores_share_the_key_value_shape(tmp_path):
    for store in (MemoryStore(), JsonDirectoryStore(str(tmp_path))):
        assert isinstance(store, KeyValueStore)
        store.set("k", "v")
        assert store.get("k") == "v"
