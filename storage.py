"""
Key-value persistence for the four record collections.

Each collection is stored as one JSON document under a fixed key. Loads
never raise: unreadable or invalid data is logged and treated as empty (or
as the default categories). Saves raise StorageError so callers can leave
their in-memory state unchanged when a write fails.
"""
import logging
import os
import tempfile
from typing import List, Mapping, Optional, Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from models import BehaviorCategory, BehaviorEntry, SchoolClass, Student, default_categories

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    'students': 'students',
    'categories': 'behaviors',
    'entries': 'behavior_entries',
    'classes': 'classes',
}

_ADAPTERS = {
    'students': TypeAdapter(List[Student]),
    'categories': TypeAdapter(List[BehaviorCategory]),
    'entries': TypeAdapter(List[BehaviorEntry]),
    'classes': TypeAdapter(List[SchoolClass]),
}


class StorageError(Exception):
    """A collection could not be written."""


@runtime_checkable
class KeyValueStore(Protocol):
    """String values addressed by key. `set_many` must write all values or none."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, values: Mapping[str, str]) -> None: ...


class MemoryStore:
    """Dict-backed store, used for throwaway sessions and tests."""

    def __init__(self, initial=None):
        self.data = dict(initial or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def set_many(self, values):
        self.data.update(values)


class JsonDirectoryStore:
    """Stores each key as `<key>.json` inside a directory."""

    def __init__(self, path):
        self.path = path
        os.makedirs(self.path, exist_ok=True)

    def _file_for(self, key):
        return os.path.join(self.path, f"{key}.json")

    def get(self, key):
        file_path = self._file_for(key)
        if not os.path.exists(file_path):
            return None
        with open(file_path, encoding='utf-8') as f:
            return f.read()

    def set(self, key, value):
        self.set_many({key: value})

    def set_many(self, values):
        """Write every value to a temp file first, then move them all into place."""
        staged = []
        try:
            for key, value in values.items():
                fd, tmp_path = tempfile.mkstemp(dir=self.path, prefix=f".{key}.", suffix=".tmp")
                staged.append((tmp_path, self._file_for(key)))
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(value)
        except OSError:
            for tmp_path, _ in staged:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
            raise

        for tmp_path, final_path in staged:
            os.replace(tmp_path, final_path)


class Storage:
    """Typed load/save API over a key-value store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _load(self, name):
        key = STORAGE_KEYS[name]
        try:
            raw = self.store.get(key)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error loading %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return _ADAPTERS[name].validate_json(raw)
        except ValidationError as e:
            logger.error("Error loading %s: stored data is invalid (%s)", key, e)
            return None

    def _dump(self, name, records):
        return _ADAPTERS[name].dump_json(list(records)).decode('utf-8')

    def save_collections(self, students=None, categories=None, entries=None, classes=None):
        """Persist any subset of the collections together in one write."""
        provided = {
            'students': students,
            'categories': categories,
            'entries': entries,
            'classes': classes,
        }
        values = {STORAGE_KEYS[name]: self._dump(name, records)
                  for name, records in provided.items() if records is not None}
        if not values:
            return
        try:
            self.store.set_many(values)
        except OSError as e:
            logger.error("Error saving %s: %s", ", ".join(values), e)
            raise StorageError(f"Could not save {', '.join(values)}: {e}") from e

    def load_students(self):
        return self._load('students') or []

    def save_students(self, students):
        self.save_collections(students=students)

    def load_categories(self):
        """Stored categories, or the default seed when none have been saved."""
        categories = self._load('categories')
        if categories is None:
            return default_categories()
        return categories

    def save_categories(self, categories):
        self.save_collections(categories=categories)

    def load_entries(self):
        return self._load('entries') or []

    def save_entries(self, entries):
        self.save_collections(entries=entries)

    def load_classes(self):
        return self._load('classes') or []

    def save_classes(self, classes):
        self.save_collections(classes=classes)
