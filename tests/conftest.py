from datetime import datetime, timedelta, timezone

import pytest

from data_manager import DataManager
from models import BehaviorEntry, DateRange, Student, default_categories
from storage import MemoryStore, Storage

START = datetime(2026, 9, 1, 8, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns START, then START + 1 minute, and so on."""

    def __init__(self, start=START, step=timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self):
        value = self.current
        self.current += self.step
        return value


def make_entry(student_id, behavior_id, timestamp, notes=None):
    return BehaviorEntry(student_id=student_id, behavior_id=behavior_id,
                         timestamp=timestamp, notes=notes, teacher_id="t1")


@pytest.fixture
def categories():
    """The eight default behavior categories."""
    return default_categories(now=START)


@pytest.fixture
def students():
    return [
        Student(id="stu_1", name="Ada Lovelace", created_at=START),
        Student(id="stu_2", name="Alan Turing", created_at=START),
    ]


@pytest.fixture
def date_range():
    """Thirty days beginning at START."""
    return DateRange(start=START, end=START + timedelta(days=30))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def data_manager(store):
    """A DataManager over an empty in-memory store, with default categories loaded."""
    manager = DataManager(Storage(store), teacher_id="t1", clock=SteppingClock())
    manager.load()
    return manager
