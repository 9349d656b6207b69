from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from models import (BehaviorCategory, BehaviorEntry, BehaviorType, DateRange, Student,
                    default_categories)
from conftest import START


def test_default_categories_seed():
    categories = default_categories(now=START)
    assert [c.id for c in categories] == [str(i) for i in range(1, 9)]
    assert sum(1 for c in categories if c.type == BehaviorType.POSITIVE) == 4
    assert sum(c.points for c in categories) == 6
    assert all((c.points > 0) == c.is_positive for c in categories)
    assert not any(c.is_custom for c in categories)


@pytest.mark.parametrize("behavior_type, points", [
    ("positive", -1),
    ("positive", 0),
    ("negative", 2),
    ("negative", 0),
])
def test_points_sign_must_match_type(behavior_type, points):
    with pytest.raises(ValidationError):
        BehaviorCategory(name="Mismatch", type=behavior_type, points=points)


def test_points_sign_checked_on_assignment():
    category = BehaviorCategory(name="Reading", type="positive", points=2)
    with pytest.raises(ValidationError):
        category.points = -2


def test_entries_are_immutable():
    entry = BehaviorEntry(student_id="stu_1", behavior_id="1", teacher_id="t1", timestamp=START)
    with pytest.raises(ValidationError):
        entry.notes = "changed"


def test_naive_timestamps_become_utc():
    entry = BehaviorEntry(student_id="stu_1", behavior_id="1", teacher_id="t1",
                          timestamp=datetime(2026, 9, 1, 8, 0))
    assert entry.timestamp == START
    assert entry.timestamp.tzinfo is not None


def test_student_blank_optional_fields():
    student = Student(name=" Ada ", email="  ", class_id="")
    assert student.name == "Ada"
    assert student.email is None
    assert student.class_id is None
    assert student.id


def test_trailing_date_range():
    now = datetime(2026, 10, 17, tzinfo=timezone.utc)
    date_range = DateRange.trailing(30, now=now)
    assert date_range.end == now
    assert date_range.end - date_range.start == timedelta(days=30)
    assert not date_range.is_empty
    assert DateRange(start=now, end=now - timedelta(days=1)).is_empty
