from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def generate_id():
    """Return a new opaque record identifier."""
    return uuid.uuid4().hex


def utc_now():
    return datetime.now(timezone.utc)


def as_aware(value):
    # Naive datetimes are treated as UTC so comparisons never mix the two kinds
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BehaviorType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class Student(BaseModel):
    """A student on the roster. `class_id` is a weak reference and may dangle."""
    id: str = Field(default_factory=generate_id)
    name: str = Field(..., min_length=1)
    class_id: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Student name cannot be blank")
        return value

    @field_validator("email", "class_id")
    @classmethod
    def blank_to_none(cls, value):
        if value is not None:
            value = value.strip()
        return value or None

    @field_validator("created_at")
    @classmethod
    def aware_created_at(cls, value):
        return as_aware(value)


class BehaviorCategory(BaseModel):
    """
    A named, signed point value used to tag logged behavior.

    The sign of `points` must agree with `type`: positive categories carry
    points > 0, negative categories carry points < 0. The check also runs on
    assignment so an edited category cannot drift out of sign.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    name: str = Field(..., min_length=1)
    type: BehaviorType
    points: int
    is_custom: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Behavior name cannot be blank")
        return value

    @field_validator("created_at")
    @classmethod
    def aware_created_at(cls, value):
        return as_aware(value)

    @model_validator(mode="after")
    def check_points_sign(self):
        if self.type == BehaviorType.POSITIVE and self.points <= 0:
            raise ValueError("Positive behaviors must have points greater than zero")
        if self.type == BehaviorType.NEGATIVE and self.points >= 0:
            raise ValueError("Negative behaviors must have points less than zero")
        return self

    @property
    def is_positive(self):
        return self.type == BehaviorType.POSITIVE


class BehaviorEntry(BaseModel):
    """One logged behavior event. Entries are never edited after creation."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    student_id: str
    behavior_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    notes: Optional[str] = None
    teacher_id: str

    @field_validator("timestamp")
    @classmethod
    def aware_timestamp(cls, value):
        return as_aware(value)

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, value):
        if value is not None:
            value = value.strip()
        return value or None


class SchoolClass(BaseModel):
    """
    A named group of students. `students` is a snapshot taken when the class
    was created; later roster changes do not update it.
    """
    id: str = Field(default_factory=generate_id)
    name: str = Field(..., min_length=1)
    students: List[Student] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Class name cannot be blank")
        return value

    @field_validator("created_at")
    @classmethod
    def aware_created_at(cls, value):
        return as_aware(value)


class DateRange(BaseModel):
    """Closed reporting interval. `start > end` is allowed and simply matches nothing."""
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def aware_bounds(cls, value):
        return as_aware(value)

    @classmethod
    def trailing(cls, days, now=None):
        """The last `days` days up to `now`."""
        end = as_aware(now) if now is not None else utc_now()
        return cls(start=end - timedelta(days=days), end=end)

    @property
    def is_empty(self):
        return self.start > self.end


class WeeklyTrend(BaseModel):
    week: int
    positive_count: int = 0
    negative_count: int = 0


class BehaviorReport(BaseModel):
    student_id: str
    date_range: DateRange
    total_positive: int = 0
    total_negative: int = 0
    entries: List[BehaviorEntry] = Field(default_factory=list)
    trends: List[WeeklyTrend] = Field(default_factory=list)


class ClassSummary(BaseModel):
    total_entries: int = 0
    positive_count: int = 0
    negative_count: int = 0
    positive_ratio: float = 0


# Seeded on first use; default categories cannot be edited or deleted
DEFAULT_CATEGORY_DATA = [
    ("1", "Helping a Classmate", BehaviorType.POSITIVE, 5),
    ("2", "On-task Behavior", BehaviorType.POSITIVE, 3),
    ("3", "Excellent Participation", BehaviorType.POSITIVE, 5),
    ("4", "Following Directions", BehaviorType.POSITIVE, 3),
    ("5", "Off-task Behavior", BehaviorType.NEGATIVE, -2),
    ("6", "Disruptive Talking", BehaviorType.NEGATIVE, -3),
    ("7", "Incomplete Work", BehaviorType.NEGATIVE, -2),
    ("8", "Not Following Directions", BehaviorType.NEGATIVE, -3),
]


def default_categories(now=None):
    """Return fresh copies of the eight seeded behavior categories."""
    created_at = now or utc_now()
    return [
        BehaviorCategory(id=category_id, name=name, type=behavior_type,
                         points=points, is_custom=False, created_at=created_at)
        for category_id, name, behavior_type, points in DEFAULT_CATEGORY_DATA
    ]
